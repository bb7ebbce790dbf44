# Supabase tables: notifications, push_subscriptions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

notifications:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null, on delete cascade)
- type: text (not null) - values: medication, appointment, document, family, system
- title: text (not null)
- message: text (not null)
- data: jsonb (nullable) - contextual payload (parent_id, medication_id, ...)
- is_read: boolean (default: false)
- read_at: timestamp (nullable)
- created_at: timestamp (default: now()) - retention sweep deletes rows older than 30 days

push_subscriptions:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null, on delete cascade)
- endpoint: text (not null)
- keys: jsonb (not null) - {p256dh, auth}
- user_agent: text (nullable)
- is_active: boolean (default: true) - set false when the push service reports the endpoint gone
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- unique constraint on (user_id, endpoint)
"""
