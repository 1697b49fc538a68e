"""
Brand Monitor - AI Visibility Analyzer

Measures how visible a company is inside AI assistants' answers:
1. Scrapes company context from the website (Firecrawl)
2. Resolves the competitor set (user input + Perplexity web search)
3. Queries every configured AI provider with evaluation prompts
4. Extracts brand/competitor mentions and scores them
5. Streams progress to the caller as Server-Sent Events
"""

__version__ = "0.1.0"
