# Supabase table: parents
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

parents:
- id: uuid (primary key)
- name: text (not null)
- birth_date: date (not null)
- gender: text (nullable) - values: male, female, other
- blood_type: text (nullable) - values: A+, A-, B+, B-, AB+, AB-, O+, O-
- avatar_url: text (nullable)
- allergies: text[] (nullable)
- chronic_conditions: text[] (nullable)
- emergency_contact_name: text (nullable)
- emergency_contact_phone: text (nullable)
- doctor_name: text (nullable)
- doctor_phone: text (nullable)
- health_insurance: text (nullable)
- insurance_number: text (nullable)
- created_by: uuid (foreign key to profiles.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

Deleting a parent cascades to family_members, medications, medication_logs,
appointments and documents.
"""
