"""Reconstruct self-reply threads and reduce them to embeddable text."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core import Post, EmbeddableThread
from ..core.config import PreprocessingOptions, IMPORT_PREPROCESSING
from ..core.exceptions import ThreadCycleError
from .preprocessor import process_thread

logger = logging.getLogger(__name__)


@dataclass
class ThreadLink:
    """Derived links for one post; never stored on the post itself."""

    parent_id: Optional[str] = None
    next_id: Optional[str] = None


class ThreadBuilder:
    """
    Link reply chains into ordered threads.

    Threading semantics:

    * a post joins its parent's thread only when the parent is in the same
      batch and has the same author (self-replies);
    * a parent keeps a single successor. The first reply processed takes the
      slot; any later reply to the same parent starts its own thread;
    * posts are expected in chronological order, so parents come first.
    """

    def __init__(self, options: PreprocessingOptions = IMPORT_PREPROCESSING):
        self.options = options

    def link_posts(self, posts: List[Post]) -> Tuple[Dict[str, Post], Dict[str, ThreadLink]]:
        """Build the id lookup and the side table of parent/next links."""
        by_id: Dict[str, Post] = {}
        for post in posts:
            if post.id in by_id:
                logger.debug(f"Ignoring duplicate post id {post.id}")
                continue
            by_id[post.id] = post

        links: Dict[str, ThreadLink] = {post_id: ThreadLink() for post_id in by_id}
        for post_id, post in by_id.items():
            parent = by_id.get(post.in_reply_to_id) if post.in_reply_to_id else None
            if parent is None or parent.id == post_id:
                continue
            if parent.author_id != post.author_id:
                continue
            parent_link = links[parent.id]
            if parent_link.next_id is not None:
                # Successor slot taken: this reply becomes an independent root
                logger.debug(
                    f"Post {parent.id} already continues with {parent_link.next_id}; "
                    f"{post_id} starts a new thread"
                )
                continue
            parent_link.next_id = post_id
            links[post_id].parent_id = parent.id

        return by_id, links

    def build_chains(self, posts: List[Post]) -> List[List[Post]]:
        """
        Materialize each thread as an ordered list of posts.

        Raises:
            ThreadCycleError: If some posts cannot be reached from any root
        """
        by_id, links = self.link_posts(posts)
        visited = set()
        chains = []

        for post_id, post in by_id.items():
            if links[post_id].parent_id is not None:
                continue

            chain = [post]
            visited.add(post_id)
            next_id = links[post_id].next_id
            while next_id is not None:
                if next_id in visited:
                    raise ThreadCycleError([p.id for p in chain] + [next_id])
                visited.add(next_id)
                chain.append(by_id[next_id])
                next_id = links[next_id].next_id

            chains.append(chain)

        if len(visited) != len(by_id):
            raise ThreadCycleError([pid for pid in by_id if pid not in visited])

        return chains

    def build_threads(self, posts: List[Post], username: str = "") -> List[EmbeddableThread]:
        """
        Build embeddable threads from a batch of posts.

        Threads whose combined text is empty after preprocessing are
        omitted.
        """
        chains = self.build_chains(posts)
        word_count = sum(len(post.content.split(" ")) for chain in chains for post in chain)

        threads = []
        for chain in chains:
            text = process_thread(chain, self.options)
            if not text:
                continue
            root = chain[0]
            threads.append(
                EmbeddableThread(
                    id=root.id,
                    text=text,
                    username=username,
                    created_at=root.created_at,
                    post_ids=tuple(post.id for post in chain),
                    last_post_at=max(post.created_at for post in chain),
                )
            )

        logger.info(
            f"Built {len(chains)} threads ({len(threads)} embeddable). "
            f"Total word count: {word_count}"
        )
        return threads
