"""Database seeder: fills a fresh schema with demo users, articles and comments."""
import argparse
import asyncio
import random
import time

from conduit.database import Base, async_session, commit, create_tables, engine
from conduit.wiring import sql_services

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]

PASSWORD = "password123"


async def seed(small: bool = False, seed_value: int | None = None):
    rng = random.Random(seed_value)
    num_users = 5 if small else 25
    num_articles = 20 if small else 500
    num_comments_per_article = 2 if small else 4

    print(f"Seeding: {num_users} users, {num_articles} articles, "
          f"~{num_articles * num_comments_per_article} comments")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_tables()

    async with async_session() as session:
        services = sql_services(session)

        # Users
        users = []
        for i in range(num_users):
            user = await services.users.register(
                f"user_{i:04d}", f"user_{i:04d}@example.com", PASSWORD
            )
            await services.users.update(
                user.id, bio=f"I am demo user number {i}. I write about technology."
            )
            users.append(user)
        print(f"  Created {len(users)} users (password: {PASSWORD})")

        # Follows
        follows = 0
        for user in users:
            for target in rng.sample(users, k=min(3, len(users))):
                if target.id != user.id:
                    await services.users.follow(user.id, target.username)
                    follows += 1
        print(f"  Created {follows} follows")

        # Articles, favorites and comments
        total_comments = 0
        for i in range(num_articles):
            topic = rng.choice(TAGS)
            article = await services.articles.publish(
                rng.choice(users).id,
                f"How to optimize {topic} applications",
                f"A guide to running {topic} in production.",
                f"This is the full content of article {i}. " * 20,
                rng.sample(TAGS, k=rng.randint(1, 4)),
            )
            for fan in rng.sample(users, k=rng.randint(0, min(5, len(users)))):
                await services.articles.favorite(article.id, fan.id, True)
            for j in range(num_comments_per_article):
                await services.comments.add(
                    article.id, rng.choice(users).id, f"Comment {j} on article {i}. Great read!"
                )
                total_comments += 1
            if (i + 1) % 100 == 0:
                await commit(session)
                print(f"  Articles: {i + 1}/{num_articles}")

        await commit(session)
        print(f"  Created {num_articles} articles, {total_comments} comments")

    elapsed = time.perf_counter() - start
    print(f"Seeding complete in {elapsed:.1f}s")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Small dataset for testing")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, seed_value=args.seed))
