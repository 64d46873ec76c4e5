"""
Provider layer for swappable implementations.

Each provider type has an abstract interface that concrete implementations
must satisfy. Implementations are selected at startup by the factories in
the subpackages.

Directory Structure:
    providers/
    ├── __init__.py              # This file
    ├── llm/                     # AI vendor adapters
    │   ├── __init__.py          # Factory - builds the vendor registry
    │   ├── interface.py         # Abstract adapter interface
    │   ├── registry.py          # Vendor id -> adapter lookup
    │   ├── openai_impl.py       # OpenAI implementation
    │   ├── anthropic_impl.py    # Anthropic implementation
    │   └── gemini_impl.py       # Gemini implementation
    └── database/                # Configuration store providers
        ├── __init__.py          # Factory - selects provider
        ├── interface.py         # Abstract interface and entities
        ├── firestore_impl.py    # Firestore implementation
        └── memory_impl.py       # In-process implementation
"""

__all__ = []
