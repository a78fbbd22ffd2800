import random

import click
from faker import Faker
from rethinkdb import RethinkDB

from rethinksync.source import RethinkDBSource
from rethinksync.utils import config_loader


@click.command()
@click.option(
    "--config",
    "-c",
    help="River config",
    type=click.Path(exists=True),
)
@click.option("--nsize", "-n", default=10, help="Number of dummy data samples")
def main(config, nsize):
    doc: dict = config_loader(config=config)
    source: RethinkDBSource = RethinkDBSource.from_config(doc)
    r: RethinkDB = RethinkDB()
    conn = r.connect(
        host=source.host, port=source.port, auth_key=source.auth_key or None
    )
    faker: Faker = Faker()
    try:
        for db, tables in doc["rethinkdb"]["databases"].items():
            if db not in r.db_list().run(conn):
                r.db_create(db).run(conn)
            for table in tables:
                if table not in r.db(db).table_list().run(conn):
                    r.db(db).table_create(table).run(conn)

        posts: list = [
            {
                "title": faker.sentence(),
                "body": faker.paragraph(),
                "author": faker.name(),
            }
            for _ in range(nsize)
        ]
        result: dict = r.db("blog").table("posts").insert(posts).run(conn)
        comments: list = [
            {
                "post_id": random.choice(result["generated_keys"]),
                "text": faker.sentence(),
            }
            for _ in range(nsize * 2)
        ]
        r.db("blog").table("comments").insert(comments).run(conn)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
