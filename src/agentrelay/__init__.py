"""AgentRelay: multi-agent LLM workflow steps with provider fallback and elicitation."""

__version__ = "0.1.0"
