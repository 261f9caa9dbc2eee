# Supabase tables: circles, circle_memberships, circle_tag_config
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py (DDL: app/database/schema.sql)

"""
Expected Supabase table structure:

circles:
- circle_id: text (primary key) - generated, opaque
- name: text (not null)
- description: text (default '')
- tags: jsonb (list of tag_key)
- created_at: text (ISO-8601 UTC)
- created_by_user_id: text (not null)

circle_memberships:
- user_id: text (partition key)
- circle_id: text
- role: text - values: owner, member
- joined_at: text (ISO-8601 UTC)
- display_name: text (nullable)
- primary key (user_id, circle_id); secondary index on circle_id

circle_tag_config (static reference data, seeded by app/scripts/seed_circle_tags.py):
- tag_key: text (primary key)
- display_label: text
- category: text - e.g. life_stage, interest, support
- description: text
- tone_guidance: text
- active: boolean
"""
