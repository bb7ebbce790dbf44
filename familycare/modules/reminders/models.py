# Supabase table: reminder_deliveries
# This file documents the expected database schema
# Written by ReminderJobs._claim_reminder before a reminder is fanned out

"""
Expected Supabase table structure:

reminder_deliveries:
- id: uuid (primary key)
- reminder_key: text (not null, unique)
    medication:<medication_id>:<HH:MM>:<YYYY-MM-DD>
    appointment:<appointment_id>:<YYYY-MM-DD>
- created_at: timestamp (default: now())
"""
