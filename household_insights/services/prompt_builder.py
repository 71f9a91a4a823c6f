"""
Prompt Builder

Turns a DataCompilation into a bounded natural-language request for the
text generator. Three styles are available (comprehensive, focused,
conversational); PromptRouter picks one from the shape of the data.

Every style asks for the same block format so a single parser handles
the response:

    INSIGHT 1: <category>
    <one sentence>
    RECOMMENDATION: <one action>
"""
import math
import re
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from household_insights.services.data_compiler import CategoryPattern, DataCompilation, FieldObservation
from household_insights.utils.logger import log

COMPREHENSIVE = "comprehensive"
FOCUSED = "focused"
CONVERSATIONAL = "conversational"

TRUNCATION_NOTICE = "[Data truncated to fit length limit]"

_FILLER_WORDS = re.compile(r"\b(very|really|quite|rather|extremely)\s+", re.IGNORECASE)


class PromptOptimizer:
    """Keeps prompts small: fewer categories, fewer fields, less whitespace"""

    def __init__(
        self,
        max_prompt_tokens: int = 3000,
        max_fields_per_category: int = 3,
        max_categories: int = 5,
        max_record_types: int = 8
    ):
        self.max_prompt_tokens = max_prompt_tokens
        self.max_fields_per_category = max_fields_per_category
        self.max_categories = max_categories
        self.max_record_types = max_record_types

    def optimize_compilation(self, compilation: DataCompilation) -> DataCompilation:
        """Return a trimmed copy; the input compilation is left untouched"""
        top_categories = sorted(
            compilation.patterns.items(),
            key=lambda item: item[1].count,
            reverse=True
        )[:self.max_categories]

        patterns = {}
        for category, pattern in top_categories:
            top_fields = sorted(
                pattern.field_analysis.items(),
                key=lambda item: (10 if item[1].statistics else 0) + len(item[1].values),
                reverse=True
            )[:self.max_fields_per_category]
            patterns[category] = replace(
                pattern,
                field_analysis=dict(top_fields),
                most_common_fields=pattern.most_common_fields[:3],
            )

        return replace(
            compilation,
            record_type_structures=compilation.record_type_structures[:self.max_record_types],
            patterns=patterns,
        )

    @staticmethod
    def compress_text(text: str) -> str:
        """Collapse runs of spaces and blank lines; line structure is kept"""
        text = _FILLER_WORDS.sub("", text)
        text = re.sub(r"[ \t]+", " ", text)
        text = re.sub(r" *\n *", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough approximation: 1 token per 4 characters"""
        return math.ceil(len(text) / 4)

    def truncate_section(self, text: str, max_chars: int) -> str:
        """Cut a data section at a line or sentence boundary when it is too long"""
        if len(text) <= max_chars:
            return text

        truncated = text[:max_chars]
        cut_point = max(truncated.rfind("\n"), truncated.rfind("."))
        if cut_point > max_chars * 0.8:
            truncated = truncated[:cut_point + 1]
        return truncated.rstrip() + "\n" + TRUNCATION_NOTICE

    def get_optimization_stats(self, original: str, optimized: str) -> Dict[str, float]:
        original_tokens = self.estimate_tokens(original)
        optimized_tokens = self.estimate_tokens(optimized)
        return {
            "original_tokens": original_tokens,
            "optimized_tokens": optimized_tokens,
            "tokens_saved": original_tokens - optimized_tokens,
            "compression_ratio": optimized_tokens / original_tokens if original_tokens else 1.0,
        }


class PromptStyle:
    """Base prompt style: subclasses build the text and declare what it must contain"""

    id: str = ""
    name: str = ""
    description: str = ""
    min_length: int = 100
    max_length: int = 4000
    required_elements: Tuple[str, ...] = ()

    def __init__(self, optimizer: Optional[PromptOptimizer] = None):
        self.optimizer = optimizer or PromptOptimizer()

    def generate(self, compilation: DataCompilation) -> str:
        raise NotImplementedError

    def validate(self, prompt: str) -> bool:
        if not prompt or not isinstance(prompt, str):
            log.error(f"{self.name} prompt is not a valid string")
            return False

        if len(prompt) < self.min_length:
            log.error(f"{self.name} prompt too short (< {self.min_length} characters)")
            return False

        if len(prompt) > self.max_length:
            log.error(f"{self.name} prompt too long (> {self.max_length} characters)")
            return False

        for element in self.required_elements:
            if element not in prompt:
                log.error(f"{self.name} prompt missing required element: {element}")
                return False

        return True

    def describe(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


def _describe_field(name: str, observation: FieldObservation) -> str:
    if observation.statistics:
        stats = observation.statistics
        return f"{name}: Average {stats.mean:.1f}, {stats.trend} trend"
    if observation.frequency:
        top = ", ".join(f"{value} ({count}x)" for value, count in observation.top_values(2))
        return f"{name}: Most common: {top}"
    return f"{name}: {len(observation.values)} entries"


def _sorted_patterns(compilation: DataCompilation) -> List[Tuple[str, CategoryPattern]]:
    return sorted(compilation.patterns.items(), key=lambda item: item[1].count, reverse=True)


class ComprehensivePrompt(PromptStyle):
    id = COMPREHENSIVE
    name = "Comprehensive Analysis"
    description = "Detailed analysis with field statistics, trends and cross-category patterns"
    min_length = 100
    max_length = 6000
    required_elements = (
        "HOUSEHOLD OVERVIEW",
        "RECORD TYPE STRUCTURES",
        "DETAILED DATA PATTERNS",
        "ANALYSIS INSTRUCTIONS",
        "INSIGHT 1:",
        "INSIGHT 2:",
        "RECOMMENDATION:",
    )

    def generate(self, compilation: DataCompilation) -> str:
        data = self.optimizer.optimize_compilation(compilation)

        record_type_details = "\n".join(
            f"- {rt.name} ({rt.category or 'General'}): {rt.field_count} fields - "
            f"{rt.description or 'Track various data points'}"
            for rt in data.record_type_structures
        )

        category_sections = []
        for category, pattern in _sorted_patterns(data):
            lines = [f"{category} ({pattern.count} entries over {pattern.time_span}):"]
            lines.extend(
                f"  - {_describe_field(name, observation)}"
                for name, observation in pattern.field_analysis.items()
            )
            category_sections.append("\n".join(lines))
        category_insights = "\n\n".join(category_sections)

        prompt = f"""You are a family wellness AI assistant analyzing household record data. Generate 2-3 actionable insights based on the data patterns below.

HOUSEHOLD OVERVIEW:
- Total Records: {data.total_records}
- Family Members: {data.members}

RECORD TYPE STRUCTURES:
{self.optimizer.truncate_section(record_type_details, 1200)}

DETAILED DATA PATTERNS:
{self.optimizer.truncate_section(category_insights, 2400)}

ANALYSIS INSTRUCTIONS:
Analyze the above data to identify meaningful patterns, trends, or correlations across different data types. Consider:
- Trends in numeric fields (sleep duration, mood ratings, etc.)
- Patterns in categorical data (sleep quality, stress levels, etc.)
- Potential correlations between different categories
- Areas where the family is doing well or might need attention

Provide insights in this exact format:

INSIGHT 1: [Category]
[One sentence describing a specific pattern, trend, or correlation you identified from the data]
RECOMMENDATION: [One specific, actionable recommendation based on this insight]

INSIGHT 2: [Category]
[One sentence describing another meaningful pattern or opportunity]
RECOMMENDATION: [One specific, actionable recommendation]

INSIGHT 3: [Category] (optional)
[One sentence about an additional insight if warranted]
RECOMMENDATION: [One specific, actionable recommendation]

Be specific about what the data shows and keep recommendations practical."""

        final_prompt = self.optimizer.compress_text(prompt)
        stats = self.optimizer.get_optimization_stats(prompt, final_prompt)
        log.debug(
            f"Prompt optimization: {stats['original_tokens']} -> {stats['optimized_tokens']} tokens"
        )
        return final_prompt


class FocusedPrompt(PromptStyle):
    id = FOCUSED
    name = "Focused Analysis"
    description = "Short analysis of the most active areas with immediate actions"
    min_length = 50
    max_length = 2500
    required_elements = (
        "FAMILY DATA SUMMARY",
        "TOP ACTIVITY AREAS",
        "INSIGHT 1:",
        "INSIGHT 2:",
        "RECOMMENDATION:",
    )

    def generate(self, compilation: DataCompilation) -> str:
        top_categories = _sorted_patterns(compilation)[:3]

        key_metrics = "\n".join(
            f"- {category}: {pattern.count} entries ({pattern.time_span}) - tracking: "
            f"{', '.join(pattern.most_common_fields[:2]) or 'general notes'}"
            for category, pattern in top_categories
        )

        sparse = [
            category for category, pattern in compilation.patterns.items()
            if pattern.count < 3 and "week" in pattern.time_span
        ]
        attention = ""
        if sparse:
            attention = "AREAS NEEDING ATTENTION:\n" + "\n".join(
                f"- {category}: Low recent activity" for category in sparse[:3]
            ) + "\n\n"

        prompt = f"""You are a wellness assistant. Analyze this family's data and provide 2 focused, actionable insights.

FAMILY DATA SUMMARY:
- {compilation.members} family members
- {compilation.total_records} total records tracked
- {len(compilation.record_type_structures)} different tracking categories

TOP ACTIVITY AREAS:
{self.optimizer.truncate_section(key_metrics, 800)}

{attention}FOCUS AREAS:
Identify the most important patterns and provide immediate, practical recommendations that this family can implement this week.

Provide exactly 2 insights in this format:

INSIGHT 1: [Primary Focus Area]
[One clear sentence about the most important pattern you see]
RECOMMENDATION: [One specific thing they can do this week]

INSIGHT 2: [Secondary Focus Area]
[One clear sentence about another key opportunity]
RECOMMENDATION: [One specific thing they can do this week]

Keep recommendations simple, specific, and immediately actionable."""

        return self.optimizer.compress_text(prompt)


class ConversationalPrompt(PromptStyle):
    id = CONVERSATIONAL
    name = "Conversational Analysis"
    description = "Friendly, encouraging analysis for households that are just getting started"
    min_length = 100
    max_length = 4000
    required_elements = (
        "WHAT I'M SEEING",
        "FAMILY TRACKING AREAS",
        "RECENT ACTIVITY PATTERNS",
        "INSIGHT 1:",
        "RECOMMENDATION:",
    )

    def generate(self, compilation: DataCompilation) -> str:
        active_categories = len(compilation.patterns)
        consistent = [c for c, p in compilation.patterns.items() if p.count >= 5]
        emerging = [c for c, p in compilation.patterns.items() if 1 <= p.count < 5]

        if consistent:
            consistency = f"You're doing great with consistent tracking in: {', '.join(consistent[:5])}"
        else:
            consistency = "You're just getting started with your tracking journey"

        exploring = ""
        if emerging:
            exploring = (
                f"I also notice you're exploring: {', '.join(emerging[:5])}. "
                "It's great that you're trying different ways to understand your family's patterns.\n\n"
            )

        tracking_areas = "\n".join(
            f"- {rt.name}: {rt.description or 'Keeping track of important moments'}"
            for rt in compilation.record_type_structures[:self.optimizer.max_record_types]
        )

        activity_lines = []
        for category, pattern in _sorted_patterns(compilation)[:self.optimizer.max_categories]:
            line = f"- {category}: {pattern.count} entries over {pattern.time_span}"
            numeric = [
                (name, obs) for name, obs in pattern.field_analysis.items() if obs.statistics
            ]
            if numeric:
                name, obs = numeric[0]
                wording = {
                    "increasing": "improving",
                    "decreasing": "changing",
                }.get(obs.statistics.trend, "staying steady")
                line += f" - {name} has been {wording}"
            elif pattern.field_analysis:
                line += f" - tracking {next(iter(pattern.field_analysis))} regularly"
            activity_lines.append(line)

        prompt = f"""Hi there! I'm here to help you understand your family's wellness patterns. Let me take a look at what you've been tracking and share some friendly insights.

WHAT I'M SEEING:
You've been tracking {compilation.total_records} records across {active_categories} different areas. {consistency}.

{exploring}FAMILY TRACKING AREAS:
{self.optimizer.truncate_section(tracking_areas, 800)}

RECENT ACTIVITY PATTERNS:
{self.optimizer.truncate_section(chr(10).join(activity_lines), 1000)}

Please share 2-3 caring, supportive insights in this format:

INSIGHT 1: [What's Going Well]
[One encouraging sentence about something positive in their data]
RECOMMENDATION: [A kind, achievable suggestion]

INSIGHT 2: [An Opportunity]
[One friendly sentence about a pattern or opportunity]
RECOMMENDATION: [A warm, encouraging suggestion they might try]

Celebrate their efforts and frame suggestions as friendly opportunities."""

        return self.optimizer.compress_text(prompt)


class PromptRouter:
    """Registry of prompt styles plus the auto-selection heuristic"""

    def __init__(self, optimizer: Optional[PromptOptimizer] = None):
        optimizer = optimizer or PromptOptimizer()
        self.styles: Dict[str, PromptStyle] = {
            COMPREHENSIVE: ComprehensivePrompt(optimizer),
            FOCUSED: FocusedPrompt(optimizer),
            CONVERSATIONAL: ConversationalPrompt(optimizer),
        }

    def get_style(self, style_id: str) -> PromptStyle:
        style = self.styles.get(style_id)
        if style is None:
            log.warning(f"Unknown prompt style: {style_id}, falling back to {COMPREHENSIVE}")
            return self.styles[COMPREHENSIVE]
        return style

    def list_styles(self) -> List[Dict[str, str]]:
        return [style.describe() for style in self.styles.values()]

    def select_style(
        self,
        compilation: DataCompilation,
        preference: Optional[str] = None
    ) -> str:
        """
        Pick a style for the data at hand

        - A valid explicit preference always wins
        - Fewer than 10 records: conversational
        - Fewer than 50 records or at most 2 categories: focused
        - Any category with more than 2 analysed fields: comprehensive
        - Otherwise focused
        """
        if preference and preference in self.styles:
            return preference

        category_count = len(compilation.patterns)
        has_rich_data = any(
            len(pattern.field_analysis) > 2 for pattern in compilation.patterns.values()
        )

        if compilation.total_records < 10:
            return CONVERSATIONAL
        if compilation.total_records < 50 or category_count <= 2:
            return FOCUSED
        if has_rich_data:
            return COMPREHENSIVE
        return FOCUSED

    def generate(self, style_id: str, compilation: DataCompilation) -> str:
        return self.get_style(style_id).generate(compilation)

    def validate(self, style_id: str, prompt: str) -> bool:
        return self.get_style(style_id).validate(prompt)

    def style_recommendations(self, compilation: DataCompilation) -> Dict[str, object]:
        reasons = {
            CONVERSATIONAL: "For a more encouraging and supportive tone",
            FOCUSED: "For quick, actionable insights focused on key areas",
            COMPREHENSIVE: "For detailed analysis with field statistics and correlations",
        }
        recommended = self.select_style(compilation)
        return {
            "recommended": recommended,
            "alternatives": [
                {"style_id": style_id, "reason": reason}
                for style_id, reason in reasons.items()
                if style_id != recommended
            ],
        }
