"""
Application Layer - Use Cases and Business Logic Orchestration

Contains:
- search: Retrieval, deduplication, scoring, evidence grading and selection
- synthesis: Prompt building for the answer model
"""
