"""Authentication and authorization.

Learn: Two credential schemes share one login endpoint:
1. Super admins → individual bcrypt password
2. Organization members → whitelisted email + the organization's shared password

Both resolve to an Identity, which is issued as a pair of stateless JWTs
and re-read from the database on every request.
"""
