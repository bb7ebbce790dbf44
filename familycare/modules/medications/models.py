# Supabase tables: medications, medication_logs
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

medications:
- id: uuid (primary key)
- parent_id: uuid (foreign key to parents.id, on delete cascade)
- name: text (not null)
- dosage: text (not null)
- unit: text (nullable)
- frequency: text (not null) - values: daily, twice_daily, thrice_daily, weekly, as_needed
- times: text[] (nullable) - "HH:MM" times of day, read by the medication reminder job
- instructions: text (nullable)
- start_date: date (not null)
- end_date: date (nullable) - past end dates are deactivated nightly
- is_active: boolean (default: true)
- created_by: uuid (foreign key to profiles.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

medication_logs:
- id: uuid (primary key)
- medication_id: uuid (foreign key to medications.id, on delete cascade)
- parent_id: uuid (foreign key to parents.id) - denormalized for the weekly report
- confirmed_by: uuid (foreign key to profiles.id)
- taken_at: timestamp (not null)
- status: text (default: 'taken') - values: taken, skipped, missed
- notes: text (nullable)
- created_at: timestamp (default: now())
"""
