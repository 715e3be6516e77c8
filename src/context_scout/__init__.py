"""Context Scout - A Slack bot that answers questions with channel context.

When mentioned, the bot searches the workspace for related messages, pulls in
the surrounding channel history and thread replies, and asks an LLM to answer
using that transcript.

Components:
- main_api: FastAPI webhook entry point (events + slash commands)
- slack: signature guard and Slack Web API client
- context: search / around / thread scatter-gather and transcript rendering
- llm: OpenAI completion gateway and prompts
- pipeline: event router and bounded event queue
"""
