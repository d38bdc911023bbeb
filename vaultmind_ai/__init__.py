"""VaultMind-AI.

This package contains the orchestration layer of a conversational assistant
that works over a user's document store (a "vault" of notes and folders).

High-level architecture
-----------------------

A turn of conversation is a *streaming session*: the generation capability
produces text incrementally and may pause to request side-effecting actions
(create a note, move a file, ...). Those requests are held until a human
decides on them, approved actions are executed, and generation resumes from
where it paused.

Core subpackages
----------------

- ``vaultmind_ai.agent_core``:

  - Action registry and concrete document-store actions.
  - Approval broker (batched, fail-closed decisions).
  - Streaming session and the LangGraph-based resumable execution
    coordinator.
  - Resilience primitives (circuit breaker, retry with backoff).
  - Reversible-operation ledger (undo/redo).
  - Transcript repositories (in-memory and SQL).

- ``vaultmind_ai.server``: FastAPI surface streaming session events over SSE.

Typical workflow
----------------

Most integrations should use ``vaultmind_ai.agent_core.service.AssistantService``:

1. Start a turn and consume its events.
2. If the session suspends, list the pending invocations and submit decisions.
3. Approved actions execute, generation resumes and streams again.
4. Reversible effects can be undone and redone per conversation.
"""
