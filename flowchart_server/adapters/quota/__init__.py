"""Quota store adapters.

The prepaid quota lives in a remote row-oriented store (one row per user with a
``turns`` column). The PostgREST client talks to Supabase; the in-memory store
backs local development and tests.
"""
