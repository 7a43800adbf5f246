"""
Text-to-Speech Batch Pipeline.

    - chunker.py: Boundary-aware text splitting
    - provider.py: Adapter base class, metadata and registry
    - providers/: Vendor adapters (ElevenLabs, Fish Audio, MiniMax)
    - orchestrator.py: Batched generation with pause/resume/abort
    - dispatch.py: In-process and HTTP chunk dispatchers
    - packager.py: Per-chunk files and ZIP bundles
"""
