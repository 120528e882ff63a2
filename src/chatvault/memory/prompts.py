# src/chatvault/memory/prompts.py
"""
Prompt templates.

Templates use `{{VAR}}` placeholders. Any template can be overridden at
runtime through the settings table under the key `prompt:<key>`.
"""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

MASTER_MEMORY_INITIAL_PROMPT = """Create a MASTER MEMORY about this user from the conversation summary below. Write in third person.

Include sections for: About the User, Projects & Work, Technical Environment, Preferences, Key Decisions, Important Relationships. Only include sections with actual content.

Be specific, include names, versions, concrete details. Skip generic info.

Conversation Summary:
{{SUMMARY}}

Master Memory:"""

MASTER_MEMORY_INCREMENTAL_PROMPT = """Update this master memory by integrating the new conversation summary. Write in third person.

Rules: PRESERVE all existing info. ADD new facts. MERGE related info into sections. Only UPDATE if directly contradicted.

CURRENT MASTER MEMORY:
{{CURRENT_MASTER}}

NEW SUMMARY:
{{NEW_SUMMARY}}

Updated Master Memory:"""

MASTER_MEMORY_BATCH_FIRST_PROMPT = """Create a MASTER MEMORY about this user from the conversation summaries below. Write in third person.

Include sections for: About the User, Projects & Work, Technical Environment, Preferences, Key Decisions, Important Relationships. Only include sections with actual content. Be specific.

Conversation Summaries:
{{BATCH_TEXT}}

Master Memory:"""

MASTER_MEMORY_MERGE_PROMPT = """Merge these partial summaries into one unified MASTER MEMORY about the user. Write in third person.

Combine all information, remove duplicates, organize into sections: About the User, Projects & Work, Technical Environment, Preferences, Key Decisions, Important Relationships. Be specific, keep all names, versions, concrete details.

Partial Summaries:
{{PARTIAL_SUMMARIES}}

Master Memory:"""

_MEMORY_FILTER_TAIL = """
If the role is 'assistant', store ONLY if it repeats a verified user fact or a decision the user made.
If unsure, set store to {{UNSURE}}.

Return JSON ONLY with this shape:
{
    "store": boolean,
    "name": "short 3-5 word title for this memory",
    "memory": "short standalone statement suitable for future retrieval"
}

Role: {{ROLE}}
Message: {{MESSAGE}}
JSON:"""

MEMORY_FILTER_LENIENT_PROMPT = """You are an inclusive memory filter. Decide if the following single message should be saved as LONG-TERM memory that a user would want in future chats.

Store information that could be useful in future conversations, including:
- Personal preferences, facts, or profile information
- Projects, specs, requirements, or technical choices
- Decisions, commitments, or agreements
- Instructions, constraints, or guidelines
- Plans, schedules, goals, or deadlines
- Facts about entities, tools, technologies mentioned
- General knowledge shared that might be referenced again

Do NOT store:
- Simple greetings or pleasantries
- Generic filler phrases
""" + _MEMORY_FILTER_TAIL.replace("{{UNSURE}}", "true")

MEMORY_FILTER_BALANCED_PROMPT = """You are a balanced memory filter. Decide if the following single message should be saved as LONG-TERM memory that a user would want in future chats.

Store ONLY explicitly stated, durable, high-signal information such as:
- Personal preferences the user directly and clearly stated ("I prefer X", "I always use Y")
- Concrete project names, product names, or specific technical architecture decisions
- Firm decisions or commitments the user explicitly made ("We decided to go with X", "I chose Y")
- Specific constraints, requirements, or deadlines stated as facts
- Long-term goals or plans the user described in their own words

Do NOT store:
- Greetings, small talk, pleasantries, or filler
- Code snippets, error messages, stack traces, or log output
- Questions the user asked (unless the question itself reveals a strong preference)
- Assistant explanations, suggestions, or recommendations (unless the user confirmed them as a decision)
- One-off troubleshooting steps, debugging attempts, or ephemeral details
- Generic or common-knowledge statements ("React is a library", "APIs use HTTP")
- Vague or implied preferences ("seems like they like X")
- Redundant facts already implied by the message itself
- Speculation, hypotheticals, or unverified claims
- Anything that won't clearly matter in future conversations
""" + _MEMORY_FILTER_TAIL.replace("{{UNSURE}}", "false")

MEMORY_FILTER_STRICT_PROMPT = """You are a very strict memory filter. Decide if the following single message should be saved as LONG-TERM memory that a user would want in future chats.

Store ONLY high-value, explicitly stated information:
- Direct personal preferences the user explicitly stated
- Major decisions or commitments clearly made
- Critical project requirements explicitly mentioned
- Core facts about important entities central to the user's work

Do NOT store:
- Greetings, small talk, or pleasantries
- Troubleshooting steps or temporary solutions
- Generic statements or common knowledge
- Technical details that are easily searchable
- Speculation, suggestions, or hypotheticals
- Anything not explicitly and directly stated by the user
- Inferred or implied information
""" + _MEMORY_FILTER_TAIL.replace("{{UNSURE}}", "false")

_ENTITY_SHAPE = """Return JSON only with this shape:
{
    "entities": [
        {
            "name": "string",
            "type": "Person | Organization | Product | Place | Object | Project | Concept | Event | Other",
            "facts": ["short factual statements about the entity"]
        }
    ]
}
"""

_ENTITY_TAIL = """
Memory statements:
{{MEMORY_TEXT}}

JSON:"""

ENTITY_EXTRACTION_LENIENT_PROMPT = """You are extracting entities from long-term memory statements. Be inclusive, capture entities that might be useful later.

""" + _ENTITY_SHAPE + """
Rules:
- Include all entities mentioned in the memory statements.
- Include people, organizations, products, places, projects, technologies, tools, and concepts.
- Be inclusive: if an entity is mentioned, it's probably worth tracking.
- Facts should be concise and verifiable.
- Return {"entities": []} only if there are no discernible entities at all.
""" + _ENTITY_TAIL

ENTITY_EXTRACTION_BALANCED_PROMPT = """You are extracting entities from long-term memory statements. Only keep entities worth remembering for future chats.

""" + _ENTITY_SHAPE + """
Rules:
- Only include entities explicitly and repeatedly mentioned or clearly central to the user's work.
- Include ONLY entities the user has a specific, ongoing relationship with (their projects, their tools, people they work with, organizations they belong to).
- Exclude passing mentions, one-off references, generic examples, or entities mentioned only in assistant advice.
- Exclude generic or common single-word entities like "API", "database", "server", "frontend", "backend", "app", "website", "code".
- Exclude entities used only as illustrative examples or in generic advice.
- Entity names must be at least 3 characters long.
- Facts must be concise, specific, durable, and directly from the memory statements. No inferred facts.
- If no entities clearly meet the bar, return {"entities": []}.
""" + _ENTITY_TAIL

ENTITY_EXTRACTION_STRICT_PROMPT = """You are extracting entities from long-term memory statements. Be very selective, only keep high-value entities.

""" + _ENTITY_SHAPE + """
Rules:
- Only include entities that are CENTRAL to the user's work or life.
- Exclude generic tools, common technologies, libraries, or frameworks unless the user has a specific relationship to them.
- Exclude one-time mentions or incidental references.
- Only include entities the user has explicitly discussed in detail or shown clear importance.
- Facts must be specific, verified, and directly from the memory statements.
- When in doubt, exclude the entity.
- Return {"entities": []} if no entities are clearly significant.
""" + _ENTITY_TAIL

ENTITY_SUMMARY_PROMPT = """You are updating an entity profile summary.

Entity: {{NAME}}
Type: {{TYPE}}

Existing summary:
{{EXISTING_SUMMARY}}

New facts:
{{NEW_FACTS}}

Write a concise, well-structured summary. Include only verified facts. Do not add speculation. Output plain text only."""

SESSION_SUMMARY_PROMPT = """Extract a user profile summary from this conversation. Focus on the USER, not the assistant. Write in third person.

Include: what they're working on, their preferences, decisions made, tools/tech they use, people mentioned.
Skip: generic advice, code snippets, things merely asked about but not adopted.

Conversation:
{{CONVERSATION_TEXT}}

User Profile Summary:"""

RAG_CHAT_PROMPT = """You are a helpful assistant that answers using ONLY the provided context from the user's memories, conversations, summaries, and entities.
Prefer specific evidence from messages, summaries, entities, and memories over the master memory. Use the master memory only as supplemental context.
If the context does not contain the answer, say you don't have that information and ask a brief follow-up question.
Do not fabricate details. Cite evidence by referencing item labels like [Memory 2] or [Message 3].
{{HISTORY_BLOCK}}
User question:
{{QUERY}}

Context:
{{CONTEXT_BLOCK}}

Answer:"""


DEFAULT_PROMPTS: Dict[str, str] = {
    "masterMemory.initial": MASTER_MEMORY_INITIAL_PROMPT,
    "masterMemory.incremental": MASTER_MEMORY_INCREMENTAL_PROMPT,
    "masterMemory.batchFirst": MASTER_MEMORY_BATCH_FIRST_PROMPT,
    "masterMemory.merge": MASTER_MEMORY_MERGE_PROMPT,
    "memoryFilter.lenient": MEMORY_FILTER_LENIENT_PROMPT,
    "memoryFilter.balanced": MEMORY_FILTER_BALANCED_PROMPT,
    "memoryFilter.strict": MEMORY_FILTER_STRICT_PROMPT,
    "entityExtraction.lenient": ENTITY_EXTRACTION_LENIENT_PROMPT,
    "entityExtraction.balanced": ENTITY_EXTRACTION_BALANCED_PROMPT,
    "entityExtraction.strict": ENTITY_EXTRACTION_STRICT_PROMPT,
    "entitySummary": ENTITY_SUMMARY_PROMPT,
    "sessionSummary": SESSION_SUMMARY_PROMPT,
    "ragChat": RAG_CHAT_PROMPT,
}

OVERRIDE_PREFIX = "prompt:"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def fill_template(template: str, variables: Mapping[str, object]) -> str:
    """Replace `{{VAR}}` placeholders; unknown names are left as-is."""

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


class PromptRegistry:
    """
    Prompt lookup with per-key overrides.

    `settings` is anything with `get(key, default)`; normally a SettingsStore.
    """

    def __init__(self, settings=None, defaults: Optional[Mapping[str, str]] = None):
        self._settings = settings
        self._defaults = dict(defaults or DEFAULT_PROMPTS)

    def keys(self):
        return list(self._defaults)

    def template(self, key: str) -> str:
        if key not in self._defaults:
            raise KeyError(f"Unknown prompt key: {key}")
        default = self._defaults[key]
        if self._settings is None:
            return default
        override = self._settings.get(OVERRIDE_PREFIX + key, None)
        return override if isinstance(override, str) and override.strip() else default

    def render(self, key: str, **variables: object) -> str:
        return fill_template(self.template(key), variables)

    def set_override(self, key: str, template: str) -> None:
        if key not in self._defaults:
            raise KeyError(f"Unknown prompt key: {key}")
        self._settings.set(OVERRIDE_PREFIX + key, template)

    def reset(self, key: str) -> None:
        self._settings.delete(OVERRIDE_PREFIX + key)
