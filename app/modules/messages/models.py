# Supabase table: circle_messages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

circle_messages:
- message_id: text (primary key) - "msg_<uuid>" unless supplied by the client
- circle_id: text (partition key, not null)
- created_at: text (sort key, ISO-8601 UTC, lexically sortable)
- author: text - display name taken from the caller's token, never from the body
- author_user_id: text
- text: text (not null)
- message_type: text - values: question, answer
- question_id: text (nullable) - answers point at a question's message_id in the same circle.
  Not enforced by a foreign key; the client relies on it by convention.

Append-only: there is no update or delete path.
"""
