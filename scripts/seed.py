"""Database seeder for local development.

Creates an admin, a handful of authors and readers (all with the password
``secret123``), categories, articles in both states and comments.  Likes,
collects and follows go through the interaction services so the stored
counters agree with the ledgers.
"""
import argparse
import asyncio
import random
import time

from blogapi.database import Base, async_session, commit, engine
from blogapi.models import Article, ArticleState, Category, Comment, Role, User
from blogapi.schemas import Identity
from blogapi.security import hash_password
from blogapi.services import interaction_service

PASSWORD = "secret123"

CATEGORIES = [
    ("Python", "python"),
    ("Databases", "db"),
    ("DevOps", "devops"),
    ("Frontend", "fe"),
    ("Career", "career"),
]


def _identity(user: User) -> Identity:
    return Identity(user_id=user.id, username=user.username, role=user.role)


async def seed(small: bool = False):
    num_authors = 3 if small else 10
    num_readers = 10 if small else 50
    num_articles = 30 if small else 500
    num_comments_per_article = 2 if small else 5

    print(f"Seeding: {num_authors} authors, {num_readers} readers, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Hashed once and shared by every seeded account.
    password_hash = hash_password(PASSWORD)

    async with async_session() as session:
        admin = User(username="admin", password_hash=password_hash, role=Role.ADMIN, nickname="Admin")
        authors = [
            User(username=f"author{i:02d}", password_hash=password_hash, role=Role.AUTHOR, nickname=f"Author {i}")
            for i in range(num_authors)
        ]
        readers = [
            User(username=f"reader{i:02d}", password_hash=password_hash, role=Role.READER)
            for i in range(num_readers)
        ]
        session.add_all([admin, *authors, *readers])
        await session.flush()
        print(f"  Created {1 + len(authors) + len(readers)} users")

        categories = [Category(name=name, alias=alias, created_by=admin.id) for name, alias in CATEGORIES]
        session.add_all(categories)
        await session.flush()
        print(f"  Created {len(categories)} categories")

        articles = []
        for i in range(num_articles):
            topic = random.choice(categories)
            article = Article(
                title=f"Article {i}: notes on {topic.name}",
                content=f"This is the full content of article {i}. " * 20,
                state=ArticleState.PUBLISHED if random.random() > 0.1 else ArticleState.DRAFT,
                category_id=topic.id,
                user_id=random.choice(authors).id,
            )
            session.add(article)
            articles.append(article)
        await session.flush()
        published = [a for a in articles if a.state == ArticleState.PUBLISHED]
        print(f"  Created {len(articles)} articles ({len(published)} published)")

        total_comments = 0
        for article in published:
            for _ in range(random.randint(0, num_comments_per_article)):
                session.add(Comment(
                    content="Great article! Very helpful for understanding the topic.",
                    article_id=article.id,
                    user_id=random.choice(readers).id,
                ))
                total_comments += 1
        await session.flush()
        print(f"  Created {total_comments} comments")

        interactions = 0
        for reader in readers:
            me = _identity(reader)
            for article in random.sample(published, k=min(len(published), 5)):
                await interaction_service.toggle_article_like(session, me, article.id)
                interactions += 1
            for article in random.sample(published, k=min(len(published), 2)):
                await interaction_service.toggle_article_collect(session, me, article.id)
                interactions += 1
            for author in random.sample(authors, k=min(len(authors), 2)):
                await interaction_service.toggle_follow(session, me, author.id)
                interactions += 1
        print(f"  Recorded {interactions} interactions")

        await commit(session)

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s (password for every account: {PASSWORD})")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (30 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
