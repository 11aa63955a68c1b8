# Supabase tables: users, trainers, clients
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in store.py

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, equals the credential id issued by Supabase Auth)
- email: text (unique, not null, stored lower-cased)
- name: text (not null)
- role: text (not null, default 'pending') - pending | client | trainer | admin
- registration_method: text (not null) - email | google
- created_at: timestamp (default: now())
- last_login: timestamp (nullable)

trainers:
- id: uuid (primary key, default gen_random_uuid())
- user_id: uuid (unique, not null, references users.id)
- created_at: timestamp (default: now())

clients:
- id: uuid (primary key, default gen_random_uuid())
- user_id: uuid (unique, not null, references users.id)
- created_at: timestamp (default: now())

The unique constraints on users.email, trainers.user_id and clients.user_id
are what make account creation and profile creation safe under concurrent
callers: a losing insert fails with Postgres code 23505.
"""
