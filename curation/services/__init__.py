"""
Services Package - Curation Critique Service
curation/services/__init__.py

Vision evaluators, evaluation cache, history store and the curation
orchestration service.
"""
