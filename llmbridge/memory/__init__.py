"""
Conversation memory — provider-shaped chat history over a record store.

Modules:
- store: PersistedMessageRecord, RecordStore, in-process and Supabase stores
- driver: MemoryDriver — scoped append/list/clear for one provider
- manager: MemoryManager — lazy per-provider driver cache
"""
