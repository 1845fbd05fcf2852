"""Prompt assembly from agent persona, template and step context."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from .template import TemplateEngine

if TYPE_CHECKING:
    from agentrelay.models import Agent, RepositoryContext, Template

    from .context import StepContext

README_PREVIEW_CHARS = 500

INTERACTIVE_INSTRUCTION = (
    "This is an INTERACTIVE template. Do not generate the complete document. "
    "Instead, read the template instructions carefully and start the conversation "
    "as instructed. Begin by following the introduction section's guidance to "
    "interact with the user."
)


class PromptAssembler:
    """Builds provider-ready prompt strings.

    Document prompts have five blocks in order: system, task, context,
    output format and quality standards. Feedback from earlier attempts is
    appended as a final block.
    """

    def __init__(self, engine: TemplateEngine | None = None) -> None:
        self.engine = engine or TemplateEngine()

    # Shared pieces

    def _persona_header(self, agent: Agent, default_capabilities: str) -> str:
        persona = agent.persona
        role = persona.role or agent.title or "AI Agent"
        identity = persona.identity or f"an expert {role}"
        lines = [
            f"You are {agent.display_name}, {identity}.",
            "",
            f"Style: {persona.style or 'Professional and helpful'}",
            f"Capabilities: {agent.when_to_use or default_capabilities}",
        ]
        if persona.core_principles:
            lines += ["", "Core Principles:", *(f"- {p}" for p in persona.core_principles)]
        return "\n".join(lines)

    def repository_block(self, repository: RepositoryContext | None) -> str:
        """Repository facts, or an empty string when there is no repository."""
        if repository is None:
            return ""
        lines = [
            "Repository Context:",
            f"- Repository: {repository.name}",
            f"- URL: {repository.url or 'Not specified'}",
            f"- Branch: {repository.branch or 'main'}",
            f"- Language: {repository.language or 'Not specified'}",
            f"- Visibility: {repository.visibility or 'Not specified'}",
        ]
        if repository.summary or repository.readme_preview:
            lines += ["", "Repository Analysis:"]
            if repository.summary:
                lines.append(repository.summary)
            if repository.readme_preview:
                preview = repository.readme_preview[:README_PREVIEW_CHARS]
                lines.append(f"- README Preview: {preview}")
        else:
            lines += [
                "",
                "Repository analysis is not available. Base your work on the repository "
                "name and URL only and do not assume its structure or technologies.",
            ]
        return "\n".join(lines)

    def feedback_block(self, context: StepContext) -> str:
        """Notes about earlier failed attempts, or an empty string."""
        lines: list[str] = []
        if context.validation_feedback:
            lines.append("The previous attempt was rejected for these reasons:")
            lines += [f"- {error}" for error in context.validation_feedback]
        if context.attempt_feedback:
            lines.append(f"- {context.attempt_feedback}")
        if not lines:
            return ""
        return "Previous attempt feedback:\n" + "\n".join(lines)

    def _with_feedback(self, prompt: str, context: StepContext) -> str:
        feedback = self.feedback_block(context)
        return f"{prompt}\n\n{feedback}" if feedback else prompt

    # Document prompt blocks

    def system_block(self, agent: Agent) -> str:
        persona = agent.persona
        role = persona.role or agent.title or "AI Agent"
        focus = persona.focus or "Generate high-quality deliverables based on your expertise"
        style = persona.style or "Professional, thorough, and detail-oriented"
        text = (
            f"You are {persona.identity or f'an expert {role}'} with focus on: {focus}.\n\n"
            f"Style: {style}\n\n"
            f"Capabilities: {agent.when_to_use or 'Handle assigned tasks'}"
        )
        if persona.core_principles:
            text += "\n\nCore Principles:\n" + "\n".join(f"- {p}" for p in persona.core_principles)
        return text

    def task_block(self, template: Template, context: StepContext) -> str:
        variables = context.template_variables()
        lines = [
            f'Your current task: Create a {template.display_name} for the project: '
            f'"{context.user_prompt}"',
            "",
            "Template sections to complete:",
        ]
        for index, section in enumerate(template.sections, start=1):
            lines.append(f"{index}. {self.engine.render(section.label, variables)}")
            if section.instruction:
                instruction = self.engine.render(section.instruction, variables).strip()
                lines.append(f"   Instructions: {instruction}")
            if section.format:
                lines.append(f"   Format: {section.format}")
            if section.examples:
                lines.append(f"   Examples: {', '.join(section.examples)}")
            answer = context.answer_for(section.id)
            if answer:
                lines.append(f"   User input: {answer}")
        return "\n".join(lines)

    def context_block(self, context: StepContext) -> str:
        variables = context.template_variables()
        text = (
            "Project Context:\n"
            f"- Project Name: {variables['project_name']}\n"
            f"- Project Type: {variables['project_type']}\n"
            f"- User Requirements: {context.user_prompt}"
        )
        if repository := self.repository_block(context.repository):
            text += f"\n\n{repository}"
        return text

    def format_block(self, template: Template) -> str:
        output = template.output
        filename = output.filename or "document.md"
        lines = [f"Output Format: {output.format.upper()}"]
        if output.format == "json":
            lines.append("Respond with a single valid JSON object with exactly these fields:")
            lines += [f"  - {json.dumps(key)}" for key in output.structure]
        lines += [f"Filename: {filename}", "Follow template sections exactly."]
        return "\n".join(lines)

    def quality_block(self, template: Template) -> str:
        if template.quality:
            return "Quality Standards:\n" + "\n".join(f"- {q}" for q in template.quality)
        return (
            "Quality Standards:\n"
            "- Complete all required sections\n"
            "- Make content specific to user requirements\n"
            f"- Use professional language for {template.display_name}"
        )

    # Prompts

    def build_document_prompt(
        self, agent: Agent, template: Template, context: StepContext
    ) -> str:
        """Five-block prompt for generating a document from a template."""
        system = self.system_block(agent)
        task = self.task_block(template, context)
        project = self.context_block(context)

        if template.is_interactive:
            prompt = f"{system}\n\n{task}\n\n{project}\n\n{INTERACTIVE_INSTRUCTION}"
        else:
            blocks = [system, task, project, self.format_block(template)]
            blocks.append(self.quality_block(template))
            prompt = "\n\n".join(blocks) + "\n\nPlease generate the complete deliverable now:"
        return self._with_feedback(prompt, context)

    def build_chat_prompt(self, agent: Agent, context: StepContext) -> str:
        """Conversational reply, used for chat steps and answered interactive steps."""
        header = self._persona_header(agent, "Assist with various tasks")
        parts = [header]
        if context.conversation:
            parts.append("Conversation so far:\n" + "\n".join(context.conversation))
        if context.step_notes:
            parts.append(f"Step instructions: {context.step_notes}")
        if repository := self.repository_block(context.repository):
            parts.append(repository)
        message = context.answer_for(context.step_id or "") or context.user_prompt or "Hello"
        parts.append(f'Respond naturally to the user\'s message: "{message}"')
        parts.append(
            "If they asked for help (*help), explain your role and available capabilities "
            "in a conversational way."
        )
        return self._with_feedback("\n\n".join(parts), context)

    def build_notes_prompt(self, agent: Agent, context: StepContext) -> str:
        """Prompt for a step driven by its free-text notes instead of a template."""
        header = self._persona_header(agent, "Assist with workflow tasks")
        action = context.action or "workflow step"
        workflow = (
            "WORKFLOW CONTEXT:\n"
            f'- User\'s Original Request: "{context.user_prompt or "User request"}"\n'
            f"- Current Step: {action}\n"
            f"- Step Instructions: {context.step_notes or 'Complete the assigned task'}"
        )
        if repository := self.repository_block(context.repository):
            workflow += f"\n\n{repository}"
        task = (
            f"TASK: You are part of a workflow. Your role is to {action}.\n\n"
            "IMPORTANT:\n"
            "- Read the step instructions carefully\n"
            "- Implement what they ask you to do\n"
            "- Respond conversationally to the user as if you are helping them directly\n"
            '- If the instructions contain "Ask user:" followed by quoted text, use that '
            "EXACT wording for the question\n"
            "- For other questions not in quotes, ask them naturally in your own words\n"
            "- Do not show the raw instructions to the user\n\n"
            "Based on the step instructions above, provide your response:"
        )
        return self._with_feedback(f"{header}\n\n{workflow}\n\n{task}", context)

    def build_rephrase_prompt(self, instruction: str, section_title: str) -> str:
        """Ask the model to turn a template instruction into one plain question."""
        return (
            "Rewrite the following template instruction as one short, friendly question "
            "for a non-technical user. Reply with the question only.\n\n"
            f"Section: {section_title}\n"
            f"Instruction: {instruction}"
        )
