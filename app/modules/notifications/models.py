# Supabase table: notification_subscriptions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

notification_subscriptions:
- user_id: text (partition key, not null)
- subscription_id: text (not null) - sha256 of the push endpoint, so re-registering a device is idempotent
- endpoint: text (not null) - push service URL from the browser's PushSubscription
- p256dh: text (not null) - client public key
- auth: text (not null) - client auth secret
- user_agent: text (nullable)
- created_at: text (ISO-8601 UTC)
- primary key (user_id, subscription_id)

Push events are not persisted. They live on the SQS queue only:

{"type": "NEW_QUESTION" | "NEW_ANSWER", "circleId", "circleName", "questionId",
 "answerId"?, "preview", "actorUserId"}
"""
