# Supabase table: documents
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# File bytes live in the 'medical-documents' storage bucket (or S3) under <parent_id>/

"""
Expected Supabase table structure:

documents:
- id: uuid (primary key)
- parent_id: uuid (foreign key to parents.id, on delete cascade)
- title: text (not null)
- type: text (not null) - values: exam, prescription, report, vaccine, other
- description: text (nullable)
- document_date: date (nullable)
- file_path: text (not null) - storage key
- file_name: text (not null) - original upload name
- file_size: integer (nullable)
- mime_type: text (nullable)
- tags: text[] (nullable)
- uploaded_by: uuid (foreign key to profiles.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
"""
