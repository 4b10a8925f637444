"""GitHub integration - fetching pull requests and posting decisions.

Talks to GitHub through the ``gh`` CLI and renders the decision as a
markdown comment with:
  - Decision badge (action, confidence, blast radius)
  - Factor breakdown and risk signals
  - Security findings and policy results
"""
