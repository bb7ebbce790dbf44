# Supabase table: appointments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

appointments:
- id: uuid (primary key)
- parent_id: uuid (foreign key to parents.id, on delete cascade)
- doctor_name: text (not null)
- specialty: text (nullable)
- clinic_name: text (nullable)
- location: text (nullable)
- scheduled_at: timestamp with time zone (not null)
- duration_minutes: integer (default: 60)
- status: text (default: 'scheduled') - values: scheduled, completed, cancelled, missed
- notes: text (nullable)
- outcome: text (nullable)
- created_by: uuid (foreign key to profiles.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

Only 'scheduled' rows are moved to 'missed' by the nightly sweep.
"""
