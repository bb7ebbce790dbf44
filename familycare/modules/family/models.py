# Supabase table: family_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Multi-row writes run through the SQL functions in database/migrations/002_family_functions.sql

"""
Expected Supabase table structure:

family_members:
- id: uuid (primary key)
- parent_id: uuid (foreign key to parents.id, not null, on delete cascade)
- user_id: uuid (foreign key to profiles.id, not null, on delete cascade)
- role: text (not null, default: 'viewer') - values: admin, editor, viewer
- permissions: jsonb (default: {"can_view": true, "can_edit": false, "can_delete": false})
- status: text (default: 'pending') - values: pending, active, inactive
- invited_by: uuid (foreign key to profiles.id, nullable)
- invited_at: timestamp (default: now())
- accepted_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
- unique constraint on (parent_id, user_id)

Invariant: once a parent has an active membership it keeps at least one active admin.
"""
