"""
Request Guard Test Suite

Test Structure:
- unit/: Unit tests for the classifier, rule compiler, engine, dispatcher
  and error propagation
- integration/: End-to-end tests against the reference application
"""
