"""Development seeder: users, tags and tagged articles.

Users have no HTTP creation path, so this is how they get into a fresh
database.  The schema is rebuilt with ``app.migrate`` after dropping all
tables.
"""
import asyncio
import argparse
import random
import time

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.database import Base
from app.migrate import migrate
from app.models import STATE_ENABLED, Article, ArticleTag, Tag, User

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "golang", "typescript", "aws", "devops", "testing", "performance"]


async def seed(small: bool = False):
    num_users = 5 if small else 20
    num_articles = 50 if small else 1000

    print(f"Seeding: {num_users} users, {len(TAGS)} tags, {num_articles} articles")
    start = time.perf_counter()

    engine = create_async_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await migrate(engine)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                display_name=f"User {i}",
                bio=f"I am test user number {i}. I write about technology.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        tags = []
        for name in TAGS:
            tag = Tag(name=name, status=STATE_ENABLED, created_by="seed", updated_by="seed")
            session.add(tag)
            tags.append(tag)
        await session.flush()
        print(f"  Created {len(tags)} tags")

        for i in range(num_articles):
            author = random.choice(users)
            topic = random.choice(TAGS)
            article = Article(
                title=f"Article {i}: working with {topic}",
                desc=f"Notes on running {topic} in production.",
                content=f"This is the full content of article {i}. " * 20,
                created_by=author.username,
                user_id=author.id,
                tag_links=[
                    ArticleTag(tag=tag, created_by=author.username, updated_by=author.id)
                    for tag in random.sample(tags, k=random.randint(1, 4))
                ],
            )
            session.add(article)
            if i % 500 == 499:
                await session.flush()
        await session.commit()

    await engine.dispose()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
