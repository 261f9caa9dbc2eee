# Supabase table: circle_invitations
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

circle_invitations:
- invitation_id: text (primary key, uuid4)
- circle_id: text (not null)
- invited_email: text (not null)
- role: text - values: owner, member
- created_by_user_id: text (not null)
- created_at: text (ISO-8601 UTC)
- expires_at: bigint (epoch seconds)
- status: text - values: PENDING, ACCEPTED (terminal)
- max_uses: integer (default 1)
- uses_count: integer (default 0)
- accepted_by_user_id: text (nullable)
- accepted_at: text (nullable)

Lifecycle: PENDING -> ACCEPTED. There is no EXPIRED or REVOKED state; expiry and
the use limit are evaluated when someone tries to accept.

Accepting runs the accept_circle_invitation() Postgres function (schema.sql) via
RPC, which marks the invitation used and upserts the membership in one transaction.
"""
