"""Prompt templates for the inference gateway.

Each structured operation pairs a system prompt from SYSTEM_PROMPTS with a
user prompt built here from concrete repository data. The output shape is
enforced separately through the response schema, so prompts describe
content, not JSON layout.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitmind.models.insights import Contributor, IssueSummary, PullRequestSummary
    from gitmind.models.report import (
        AnalysisReport,
        AreaOwner,
        HeatmapCell,
        SecurityAudit,
    )
    from gitmind.models.repository import CommitRecord, RepositorySnapshot

# Input truncation limits (characters)
STRUCTURE_LIMIT = 3000
README_LIMIT = 3000
FILE_CONTENT_LIMIT = 5000
CHAT_CONTEXT_LIMIT = 8000
NARRATION_LIMIT = 500

# Rules shared by every structured prompt
_COMMON_RULES = """
RULES:
1. Base every statement on the repository data provided. Do not invent files,
   services or dependencies that are not visible in the data.
2. Use specific names from the data (directories, files, technologies).
3. Keep prose concise: short paragraphs and bullet points.
4. Do not wrap the reply in markdown code fences.
"""

SYSTEM_PROMPTS = {
    "analysis": (
        "Act as a CTO reviewing an open-source repository for a new engineering team. "
        "Produce a deep analysis: what the project does, its technology stack, key "
        "features, an architecture suggestion, a health scorecard (each score 0-100), "
        "a short roadmap, an architecture graph of the main components (node ids must "
        "be short identifiers; every edge must connect two declared node ids), "
        "deployment suggestions, and a guided tour whose steps reference node ids."
        + _COMMON_RULES
    ),
    "onboarding": (
        "Act as a senior engineer writing an onboarding guide for a developer joining "
        "this project. Give a quick start, the critical files to read first, a "
        "recommended reading path, common tasks with concrete steps, and setup "
        "instructions."
        + _COMMON_RULES
    ),
    "insights": (
        "Summarize the repository activity below for a maintainer dashboard. Give a "
        "one-paragraph overview followed by a few headed sections of bullets."
        + _COMMON_RULES
    ),
    "ownership": (
        "Describe code ownership for this repository from the per-area commit "
        "counts provided. Summarize who owns what and list bus-factor risks: areas "
        "where a single author made most of the changes."
        + _COMMON_RULES
    ),
    "activity": (
        "Describe recent development activity from the change heatmap provided. "
        "Summarize where work is concentrated and list the hotspot areas."
        + _COMMON_RULES
    ),
    "testing": (
        "Determine how this repository is tested from its file listing and readme. "
        "Report whether tests exist, the framework, the command to run them, the "
        "test files or directories, and short guidance for adding a new test."
        + _COMMON_RULES
    ),
    "explain": (
        "You are a patient senior engineer. Explain what the given file does, how it "
        "fits into the project, and anything surprising in it. Answer in markdown."
    ),
    "chat": (
        "You are an assistant that answers questions about one repository. Use the "
        "repository context provided. If the context does not contain the answer, "
        "say so briefly."
    ),
    "audit": (
        "Act as an application security reviewer. Audit the repository for security "
        "risks visible from its structure, dependencies and documentation: secrets "
        "handling, authentication, input validation, dependency hygiene and CI. "
        "Give an overall risk level (Low, Medium, High, Critical) and findings with "
        "a severity and location."
        + _COMMON_RULES
    ),
    "remediation": (
        "Act as a security lead. Turn the audit findings into a prioritized "
        "remediation plan with concrete actions and an effort estimate per step."
        + _COMMON_RULES
    ),
    "video": (
        "Create a short, calm screen-recording style walkthrough of a software "
        "architecture diagram, moving from component to component."
    ),
}


def get_system_prompt(operation: str) -> str:
    """Get the system prompt for an operation.

    Raises:
        KeyError: If the operation has no system prompt
    """
    return SYSTEM_PROMPTS[operation]


def _repository_context(snapshot: "RepositorySnapshot") -> str:
    meta = snapshot.metadata
    topics = ", ".join(meta.topics) if meta.topics else "none"
    lines = [
        f"Repo: {snapshot.reference.slug}",
        f"Description: {meta.description}",
        f"Primary language: {meta.language}",
        f"Stars: {meta.stars}  Forks: {meta.forks}  Open issues: {meta.open_issues}",
        f"Topics: {topics}",
    ]
    return "\n".join(lines)


def _structure(snapshot: "RepositorySnapshot") -> str:
    outline = "\n".join(snapshot.tree.paths)[:STRUCTURE_LIMIT]
    if snapshot.truncated:
        outline += f"\n(listing truncated: {len(snapshot.tree.paths)} of {snapshot.tree.total_entries} entries)"
    return outline


def build_analysis_prompt(snapshot: "RepositorySnapshot") -> str:
    return (
        "CONTEXT:\n"
        f"{_repository_context(snapshot)}\n\n"
        f"Structure:\n{_structure(snapshot)}\n\n"
        f"README:\n{snapshot.readme[:README_LIMIT] or '(no README)'}"
    )


def build_onboarding_prompt(snapshot: "RepositorySnapshot", report: "AnalysisReport") -> str:
    return (
        "CONTEXT:\n"
        f"{_repository_context(snapshot)}\n"
        f"Summary: {report.summary}\n"
        f"Tech stack: {', '.join(report.tech_stack)}\n\n"
        f"Structure:\n{_structure(snapshot)}\n\n"
        f"README:\n{snapshot.readme[:README_LIMIT] or '(no README)'}"
    )


def build_ownership_prompt(slug: str, owners: list["AreaOwner"]) -> str:
    rows = "\n".join(f"- {o.area}: {o.author} ({o.commits} commits)" for o in owners)
    return f"Repository: {slug}\n\nTop author per area (recent commits):\n{rows or '- no data'}"


def build_activity_prompt(slug: str, heatmap: list["HeatmapCell"], commits: list["CommitRecord"]) -> str:
    cells = "\n".join(f"- {c.area}: {c.changes} file changes" for c in heatmap)
    messages = "\n".join(f"- {c.date[:10]} {c.author}: {c.message}" for c in commits[:15])
    return (
        f"Repository: {slug}\n\n"
        f"Change heatmap (recent commits):\n{cells or '- no data'}\n\n"
        f"Recent commit messages:\n{messages or '- none'}"
    )


def build_testing_prompt(snapshot: "RepositorySnapshot") -> str:
    return (
        f"Repository: {snapshot.reference.slug}\n\n"
        f"Structure:\n{_structure(snapshot)}\n\n"
        f"README:\n{snapshot.readme[:README_LIMIT] or '(no README)'}"
    )


def build_issues_prompt(slug: str, issues: list["IssueSummary"]) -> str:
    rows = "\n".join(
        f"- #{i.number} {i.title} [{', '.join(i.labels) or 'no labels'}] "
        f"by {i.author}, {i.comments} comments"
        for i in issues
    )
    return f"Repository: {slug}\n\nOpen issues:\n{rows or '- none'}"


def build_pull_requests_prompt(slug: str, pulls: list["PullRequestSummary"]) -> str:
    rows = "\n".join(
        f"- #{p.number} {p.title} ({'merged' if p.merged else p.state}) by {p.author}"
        for p in pulls
    )
    return f"Repository: {slug}\n\nRecent pull requests:\n{rows or '- none'}"


def build_team_prompt(slug: str, contributors: list["Contributor"]) -> str:
    rows = "\n".join(f"- {c.login}: {c.contributions} contributions" for c in contributors)
    return f"Repository: {slug}\n\nTop contributors:\n{rows or '- none'}"


def build_explain_prompt(path: str, content: str) -> str:
    return f'Explain "{path}":\n\n{content[:FILE_CONTENT_LIMIT]}'


def build_chat_prompt(context: str, history: list[tuple[str, str]], question: str) -> str:
    turns = "\n".join(f"{role.upper()}: {text}" for role, text in history)
    parts = [f"CONTEXT: {context[:CHAT_CONTEXT_LIMIT]}"]
    if turns:
        parts.append(turns)
    parts.append(f"USER: {question}")
    return "\n".join(parts)


def build_narration_text(text: str) -> str:
    return f"Explain this code logic clearly: {text[:NARRATION_LIMIT]}"


def build_audit_prompt(snapshot: "RepositorySnapshot", manifests: dict[str, str] | None = None) -> str:
    prompt = build_analysis_prompt(snapshot)
    for name, content in (manifests or {}).items():
        prompt += f"\n\n{name}:\n{content[:2000]}"
    return prompt


def build_remediation_prompt(slug: str, audit: "SecurityAudit") -> str:
    findings = "\n".join(
        f"- [{f.severity}] {f.title} ({f.location or 'repository'}): {f.description}"
        for f in audit.findings
    )
    return (
        f"Repository: {slug}\n"
        f"Overall risk: {audit.risk_level}\n"
        f"Audit summary: {audit.summary}\n\n"
        f"Findings:\n{findings or '- none'}"
    )


def build_video_prompt(report: "AnalysisReport") -> str:
    components = ", ".join(node.label for node in report.architecture.nodes[:8])
    return (
        f"{SYSTEM_PROMPTS['video']}\n\n"
        f"Project: {report.summary[:400]}\n"
        f"Components: {components or ', '.join(report.tech_stack[:6])}"
    )
