"""GitMind - Repository intelligence for public GitHub repositories.

GitMind turns a repository reference into a structured analysis report and
an onboarding guide. The core path (metadata, structure, readme, analysis)
finishes first; optional enrichments (ownership, activity, testing setup)
are merged into the guide in the background and may fail independently.

Core principles:
- Progressive release: results are usable as soon as core analysis completes
- Shape contracts: every inference reply is validated against a typed model
- Local budgets: each operation kind is rate limited before any network call
- Supersede, don't cancel: a newer submission makes older results stale
"""

__version__ = "0.1.0"
__author__ = "GitMind Contributors"
