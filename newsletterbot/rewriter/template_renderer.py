"""
Template renderer for converting aggregation results to markdown newsletters.

All user-supplied text (titles, bodies, authors, topics) is stripped of
control characters and has markdown metacharacters escaped. Narrative
text is trusted to contain markdown links and is only stripped of control
characters.
"""

from typing import List, Optional

from newsletterbot.core.models import AggregationResult, ContentItem, DomainAnalysis, ReplyItem
from newsletterbot.core.utils import clamp_length, clean_text, escape_markdown, strip_control_chars
from .models import Newsletter

REDDIT_URL = "https://reddit.com"
EXCERPT_CHARS = 280


def _safe(text: str) -> str:
    return escape_markdown(strip_control_chars(text or ""))


def _link(text: str, permalink: str) -> str:
    return f"[{_safe(text)}]({REDDIT_URL}{strip_control_chars(permalink).replace(')', '%29')})"


class TemplateRenderer:
    """
    Renders newsletters to markdown.

    Provides a topic newsletter layout and a community analysis layout.
    """

    def __init__(self, excerpt_chars: int = EXCERPT_CHARS):
        self.excerpt_chars = excerpt_chars

    def render_topic_newsletter(self, result: AggregationResult, narrative: Optional[Newsletter] = None) -> str:
        """
        Render a complete topic newsletter.

        Args:
            result: Aggregated posts, comments and signals
            narrative: Optional generated narrative placed above the data

        Returns:
            Markdown document
        """
        parts: List[str] = []
        if narrative is not None:
            parts.append(self._render_narrative(narrative))
        else:
            parts.append(f"# {_safe(result.topic)}: Reddit {result.time_filter.value.capitalize()}ly Roundup")

        parts.append(self._render_insights(result.insights))
        parts.append(self._render_posts("Top Posts", result.top_posts))
        if result.top_comments:
            parts.append(self._render_comments(result.top_comments))
        if result.related_topics:
            parts.append("## Related Topics\n\n" + ", ".join(_safe(t) for t in result.related_topics))

        summary = result.summary
        parts.append(
            f"---\n\n_{summary.total_posts} posts, {summary.total_upvotes} upvotes and "
            f"{summary.total_comments} comments from {', '.join('r/' + _safe(s) for s in result.subreddits)}. "
            f"Generated {result.generated_at}._"
        )
        return "\n\n".join(part for part in parts if part) + "\n"

    def render_domain_analysis(self, analysis: DomainAnalysis) -> str:
        parts = [
            f"# Reddit Newsletter: {', '.join('r/' + _safe(s) for s in analysis.subreddits)}",
            self._render_insights(analysis.insights),
            self._render_posts("Top Posts", analysis.top_posts),
        ]
        if analysis.trending_keywords:
            lines = [
                f"- **{_safe(k.keyword)}**: {k.frequency} posts, {k.total_score} upvotes"
                for k in analysis.trending_keywords
            ]
            parts.append("## Trending Keywords\n\n" + "\n".join(lines))
        if analysis.top_contributors:
            lines = [
                f"- u/{_safe(c.username)}: {c.total_score} upvotes across {c.posts_count} posts"
                for c in analysis.top_contributors
            ]
            parts.append("## Top Contributors\n\n" + "\n".join(lines))
        return "\n\n".join(part for part in parts if part) + "\n"

    def _render_narrative(self, narrative: Newsletter) -> str:
        lines = [f"# {strip_control_chars(narrative.title)}", "", strip_control_chars(narrative.introduction)]
        for section in narrative.sections:
            lines.extend(["", f"## {strip_control_chars(section.title)}", "", strip_control_chars(section.content)])
        if narrative.key_takeaways:
            lines.extend(["", "## Key Takeaways", ""])
            lines.extend(f"- {strip_control_chars(item)}" for item in narrative.key_takeaways)
        lines.extend(["", strip_control_chars(narrative.conclusion)])
        return "\n".join(lines)

    def _render_insights(self, insights) -> str:
        if not insights:
            return ""
        return "## Highlights\n\n" + "\n".join(f"- {_safe(line)}" for line in insights)

    def _render_posts(self, heading: str, posts) -> str:
        if not posts:
            return ""
        blocks = [f"## {heading}"]
        for index, post in enumerate(posts, start=1):
            blocks.append(self._render_post(index, post))
        return "\n\n".join(blocks)

    def _render_post(self, index: int, post: ContentItem) -> str:
        line = (
            f"{index}. {_link(post.title, post.permalink)} "
            f"(r/{_safe(post.subreddit)}, {post.score} upvotes, {post.num_comments} comments, u/{_safe(post.author)})"
        )
        excerpt = clamp_length(clean_text(post.selftext), self.excerpt_chars)
        if excerpt:
            line += f"\n   > {_safe(excerpt)}"
        return line

    def _render_comments(self, comments) -> str:
        lines = ["## Top Comments", ""]
        for comment in comments:
            lines.append(self._render_comment(comment))
        return "\n".join(lines)

    def _render_comment(self, comment: ReplyItem) -> str:
        body = clamp_length(clean_text(comment.body), self.excerpt_chars)
        return f"- **u/{_safe(comment.author)}** ({comment.score} points): {_safe(body)}"


def render_topic_markdown(result: AggregationResult, narrative: Optional[Newsletter] = None) -> str:
    """Convenience function for one-off rendering."""
    return TemplateRenderer().render_topic_newsletter(result, narrative)
