# appraisal/tools/__init__.py
"""
Appraisal lots: tools package

Holds collaborator adapters that talk to the outside world:
  - vision (subpackage): AI provider protocol, OpenAI provider, mock provider

Pure pipeline logic lives under `appraisal.core`; import it from there.
"""
