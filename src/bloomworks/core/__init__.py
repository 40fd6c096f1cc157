"""Core submission pipeline for Bloomworks.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with BLOOMWORKS_ in .env files

2. **Theme Layer** (themes.py):
   - Each theme (flower, fish, bird) is a ``ThemeConfig`` value
   - ``theme_registry`` for lookup by name or legacy route

3. **Pipeline Components**:
   - submission.py: input normalisation, identity, seed derivation
   - rate_limiter.py: global and per-identity ceilings
   - prompt_composer.py: language-model prompt rewriting
   - safety_gate.py: optional moderation screening
   - image_acquirer.py: image generation with safety retry
   - persistence.py: storage upload and record insert
   - publisher.py: optional best-effort CMS push

4. **Service Adapters** (clients.py):
   - OpenAI and Supabase gateways implementing the component protocols

5. **Orchestration** (pipeline.py):
   - ``SubmissionPipeline`` and ``build_pipeline``

Usage Example
-------------
    from bloomworks.core import build_pipeline, config

    pipeline = build_pipeline(config)
    result = pipeline.run("pizza", pipeline.themes.get("flower"))
"""

from bloomworks.core.config import BloomworksConfig, config
from bloomworks.core.pipeline import SubmissionPipeline, SubmissionResult, build_pipeline
from bloomworks.core.themes import ThemeConfig, ThemeRegistry, theme_registry

__all__ = [
    "BloomworksConfig",
    "config",
    "SubmissionPipeline",
    "SubmissionResult",
    "build_pipeline",
    "ThemeConfig",
    "ThemeRegistry",
    "theme_registry",
]
