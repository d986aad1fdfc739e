"""Authentication.

Learn: Two ways to identify a caller, both resolving to a CurrentIdentity
whose user_id is the task owner key:
1. Users → `Authorization: Bearer <JWT>` signed with HIVEMIND_JWT_SECRET
2. Agents/CI → `x-api-key` header matching one of HIVEMIND_API_KEYS

An API key's identity is a hash of the key, so raw keys never end up in
task records.
"""
