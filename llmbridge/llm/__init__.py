"""
LLM Abstraction Layer — one chat interface over several providers.

Provides a unified interface for sending chat prompts to OpenAI-like,
Anthropic-like and Gemini-like backends, either waiting for the full
answer or streaming it delta by delta.

Modules:
- messages: Provider/Role enums, Message, ChatResponse, ContentDelta
- formatters: generic messages and options to provider wire shapes
- providers: ProviderSpec table (URLs, headers, body builders, parsers)
- driver: EngineDriver — send() and stream() for one provider
- streaming: DeltaStream — lazy line-by-line stream translator
- json_repair: parse_json — lenient JSON extraction from model output
"""
