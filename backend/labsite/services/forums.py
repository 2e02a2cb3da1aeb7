"""
Forum aggregator: hot security posts from Reddit and recent security
questions from Stack Overflow.

Reddit is read through asyncpraw in read-only (application-only) mode.
Stack Overflow is read through the public Stack Exchange API with httpx.
Both fetchers return an empty list when nothing usable was found; the
endpoint then serves the built-in sample posts.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import asyncpraw
import httpx
from asyncpraw.exceptions import AsyncPRAWException
from asyncprawcore.exceptions import AsyncPrawcoreException

from labsite.core.config import settings

logger = logging.getLogger(__name__)

ForumPost = Dict[str, Any]

MAX_POSTS = 10

SECURITY_KEYWORDS = (
    "vulnerability", "exploit", "penetration", "hacking", "malware", "phishing",
    "csrf", "xss", "sql injection", "buffer overflow", "privilege escalation",
    "firewall", "intrusion", "ddos", "ransomware", "cryptography", "forensics",
    "reverse engineering", "social engineering", "zero day", "backdoor",
)
SECURITY_TAGS = frozenset({"security", "authentication", "encryption", "vulnerability", "csrf", "xss"})


class ForumFeedError(Exception):
    """Raised when a forum source cannot be queried at all."""


class RedditForumClient:
    """
    Hot posts from a set of subreddits, ranked by upvotes.

    Attributes:
        subreddits: Subreddit names to read
        per_subreddit: Hot posts fetched from each subreddit
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        user_agent: Optional[str] = None,
        subreddits: Optional[List[str]] = None,
        per_subreddit: int = 5,
    ):
        self.client_id = client_id or settings.reddit_client_id
        self.client_secret = client_secret or settings.reddit_client_secret
        self.user_agent = user_agent or settings.reddit_user_agent
        self.subreddits = subreddits if subreddits is not None else settings.forum_subreddits
        self.per_subreddit = per_subreddit

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def fetch_posts(self) -> List[ForumPost]:
        """
        Fetch hot posts and return the top ``MAX_POSTS`` by upvotes.

        A subreddit that fails is skipped.

        Raises:
            ForumFeedError: If Reddit credentials are not configured
        """
        if not self.configured:
            raise ForumFeedError("Reddit credentials are not configured")

        posts: List[ForumPost] = []
        reddit = asyncpraw.Reddit(
            client_id=self.client_id,
            client_secret=self.client_secret,
            user_agent=self.user_agent,
        )
        try:
            for name in self.subreddits:
                try:
                    subreddit = await reddit.subreddit(name)
                    async for submission in subreddit.hot(limit=self.per_subreddit):
                        posts.append({
                            "title": submission.title,
                            "link": f"https://reddit.com{submission.permalink}",
                            "upvotes": submission.score or 0,
                            "comments": submission.num_comments or 0,
                            "source": "Reddit",
                        })
                except (AsyncPRAWException, AsyncPrawcoreException) as exc:
                    logger.warning(
                        "Failed to fetch subreddit",
                        extra={"subreddit": name, "error": str(exc)},
                    )
        finally:
            await reddit.close()

        posts.sort(key=lambda post: post["upvotes"], reverse=True)
        return posts[:MAX_POSTS]


def is_security_question(item: Dict[str, Any]) -> bool:
    """True when a question's title/tags mention a security keyword or tag."""
    tags = [tag.lower() for tag in item.get("tags") or []]
    content = f"{(item.get('title') or '').lower()} {' '.join(tags)}"
    if any(keyword in content for keyword in SECURITY_KEYWORDS):
        return True
    return any(tag in SECURITY_TAGS for tag in tags)


class StackOverflowForumClient:
    """
    Recent security questions from Stack Overflow.

    Several queries are tried in order (security tag, related tags, title
    search, then the security tag without a date window); the first that
    yields security questions wins.
    """

    USER_AGENT = "labsite-forums/1.0"
    LOOKBACK_SECONDS = 6 * 30 * 24 * 60 * 60

    def __init__(self, api_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_url = (api_url or settings.stackexchange_api_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout

    def _approaches(self) -> List[tuple[str, Dict[str, Any]]]:
        since = int(time.time()) - self.LOOKBACK_SECONDS
        base = {"order": "desc", "sort": "creation", "site": "stackoverflow"}
        return [
            ("questions", {**base, "tagged": "security", "pagesize": 50, "fromdate": since}),
            ("questions", {
                **base,
                "tagged": "security;authentication;encryption;vulnerability",
                "pagesize": 50,
                "fromdate": since,
            }),
            ("search", {
                **base,
                "intitle": "security OR vulnerability OR encryption OR authentication",
                "pagesize": 50,
                "fromdate": since,
            }),
            ("questions", {**base, "tagged": "security", "pagesize": 30}),
        ]

    async def fetch_posts(self) -> List[ForumPost]:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.USER_AGENT, "Accept": "application/json"},
        ) as client:
            for path, params in self._approaches():
                try:
                    response = await client.get(f"{self.api_url}/{path}", params=params)
                    response.raise_for_status()
                    items = response.json().get("items") or []
                except (httpx.HTTPError, ValueError) as exc:
                    logger.info(
                        "Stack Overflow query failed, trying next",
                        extra={"endpoint": path, "error": str(exc)},
                    )
                    continue

                questions = [item for item in items if is_security_question(item)]
                if questions:
                    return [
                        {
                            "title": item.get("title", ""),
                            "link": item.get("link", ""),
                            "upvotes": item.get("score") or 0,
                            "comments": item.get("answer_count") or 0,
                            "source": "Stack Overflow",
                        }
                        for item in questions[:MAX_POSTS]
                    ]

        logger.info("No Stack Overflow security questions found")
        return []


SAMPLE_REDDIT_POSTS: List[ForumPost] = [
    {
        "title": "New Windows LSASS dump technique that bypasses most EDRs",
        "link": "https://reddit.com/r/netsec/post1",
        "upvotes": 247,
        "comments": 34,
        "source": "Reddit",
    },
    {
        "title": "CVE-2024-1337: Remote Code Execution in Popular VPN Client",
        "link": "https://reddit.com/r/netsec/post2",
        "upvotes": 189,
        "comments": 67,
        "source": "Reddit",
    },
    {
        "title": "Advanced Persistence Techniques for Red Team Operations",
        "link": "https://reddit.com/r/redteamsec/post3",
        "upvotes": 156,
        "comments": 42,
        "source": "Reddit",
    },
    {
        "title": "Docker Container Breakout via Kernel Exploit",
        "link": "https://reddit.com/r/netsec/post4",
        "upvotes": 203,
        "comments": 58,
        "source": "Reddit",
    },
    {
        "title": "Analysis: APT29 latest campaign against government targets",
        "link": "https://reddit.com/r/cybersecurity/post5",
        "upvotes": 134,
        "comments": 29,
        "source": "Reddit",
    },
]

SAMPLE_STACKOVERFLOW_POSTS: List[ForumPost] = [
    {
        "title": "How to properly validate user input to prevent XSS in React apps?",
        "link": "https://stackoverflow.com/questions/12345",
        "upvotes": 89,
        "comments": 12,
        "source": "Stack Overflow",
    },
    {
        "title": "Secure way to implement JWT authentication with refresh tokens",
        "link": "https://stackoverflow.com/questions/12346",
        "upvotes": 156,
        "comments": 23,
        "source": "Stack Overflow",
    },
    {
        "title": "Best practices for SQL injection prevention in Node.js",
        "link": "https://stackoverflow.com/questions/12347",
        "upvotes": 234,
        "comments": 34,
        "source": "Stack Overflow",
    },
    {
        "title": "How to implement rate limiting to prevent DDoS attacks?",
        "link": "https://stackoverflow.com/questions/12348",
        "upvotes": 67,
        "comments": 8,
        "source": "Stack Overflow",
    },
    {
        "title": "Cross-Origin Resource Sharing (CORS) security implications",
        "link": "https://stackoverflow.com/questions/12349",
        "upvotes": 112,
        "comments": 19,
        "source": "Stack Overflow",
    },
]


class ForumService:
    """Pick the requested source and fall back to sample posts."""

    def __init__(
        self,
        reddit: Optional[RedditForumClient] = None,
        stackoverflow: Optional[StackOverflowForumClient] = None,
    ):
        self.reddit = reddit or RedditForumClient()
        self.stackoverflow = stackoverflow or StackOverflowForumClient()

    async def get_posts(self, source: str = "reddit") -> tuple[List[ForumPost], bool]:
        """
        Returns:
            (posts, is_fallback)
        """
        if source == "stackoverflow":
            client, samples = self.stackoverflow, SAMPLE_STACKOVERFLOW_POSTS
        else:
            client, samples = self.reddit, SAMPLE_REDDIT_POSTS

        try:
            posts = await client.fetch_posts()
        except (ForumFeedError, AsyncPRAWException, AsyncPrawcoreException, httpx.HTTPError) as exc:
            logger.warning(
                "Forum source failed, serving sample posts",
                extra={"source": source, "error": str(exc)},
            )
            return list(samples), True

        if not posts:
            return list(samples), True
        return posts, False
