"""Bundled prompt templates seeded by `promptgate template seed`."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TemplateSpec:
    """Authoring input for a template version."""

    name: str
    task: str
    body: str
    parameters: dict[str, Any] = field(default_factory=dict)


JOB_ANALYSIS = TemplateSpec(
    name="job-analysis",
    task="job_analysis",
    body="""\
Analyze this job posting and provide ratings on a scale of 1-10 for \
difficulty, career prospects, and fun factor.

Job Title: {{title}}
Description: {{description}}
Required Skills: {{skills}}

Please respond with ONLY a JSON object in this exact format:
{
  "difficulty": <number 1-10>,
  "prospects": <number 1-10>,
  "fun": <number 1-10>
}""",
)

EMPLOYER_RATING = TemplateSpec(
    name="employer-rating",
    task="employer_rating",
    body="""\
Rate this employer based on the job posting information.

Employer: {{employer}}
Job Description: {{description}}

Rate on a scale of 1-10 for credit score, salary fairness, attitude, \
and career prospects.

Respond with ONLY JSON:
{
  "credit": <number 1-10>,
  "salary": <number 1-10>,
  "attitude": <number 1-10>,
  "prospects": <number 1-10>
}""",
    parameters={"employer": "Unknown employer"},
)

REPORT_GENERATION = TemplateSpec(
    name="report-generation",
    task="report_generation",
    body="""\
Generate a comprehensive market analysis report based on the following data:

Skills: {{skills}}
Region: {{region}}
Experience Level: {{experienceLevel}}

Focus on:
1. Salary trends
2. Demand analysis
3. Career prospects
4. Market insights

Provide detailed analysis with data-driven insights.""",
    parameters={"region": "Global", "experienceLevel": "All levels"},
)

DEFAULT_TEMPLATES: tuple[TemplateSpec, ...] = (
    JOB_ANALYSIS,
    EMPLOYER_RATING,
    REPORT_GENERATION,
)

# Used when no active template exists for the draft and idea tasks.
REPORT_DRAFT_TASK = "report_draft"
REPORT_DRAFT_BODY = """\
You are a professional data analyst and content writer. Expand the \
following report idea into a complete report draft.

Report idea:
- Title: {{title}}
- Description: {{description}}
- Category: {{category}}
- Estimated demand: {{estimated_demand}}/10
- Reason: {{reason}}

The draft should cover:
1. Introduction and background
2. Data analysis and findings
3. Key insights and trends
4. Recommendations and conclusion
5. Target audience analysis
6. Data sources

Respond with ONLY a JSON object with these fields:
- title: report title
- description: detailed description
- category: report category
- targetAudience: description of the target audience
- keyInsights: array of 3-5 key insights
- dataSources: array of data sources
- content: the full report body in Markdown
- estimatedDemand: demand score (1-10)"""

REPORT_IDEAS_TASK = "report_ideas"
REPORT_IDEAS_BODY = """\
A prompt regression run over the template "{{template}}" finished.

Samples scored: {{sample_count}}
Mean accuracy: {{mean_accuracy}}
Mean consistency: {{mean_consistency}}
Quality gates passed: {{passed}}
Recommendations: {{recommendations}}

Suggest up to {{max_ideas}} market report ideas for freelancers that this \
scoring pipeline could support. Respond with ONLY a JSON object:
{
  "reportIdeas": [
    {
      "title": "...",
      "description": "...",
      "category": "...",
      "estimatedDemand": <number 1-10>,
      "reason": "..."
    }
  ]
}"""

# Tasks whose templates produce prose, not scores; playback skips them.
GENERATION_TASKS: frozenset[str] = frozenset(
    {REPORT_GENERATION.task, REPORT_DRAFT_TASK, REPORT_IDEAS_TASK}
)
