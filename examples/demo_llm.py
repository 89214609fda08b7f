"""aientity end-to-end demo: real completion endpoint.

Requires: OPENAI_API_KEY env var (optionally OPENAI_MODEL / OPENAI_API_URL)
"""

import logging
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field

import aientity as ae

logging.basicConfig(level=logging.INFO)
logging.getLogger("aientity").setLevel(logging.DEBUG)


@ae.ai_entity(
    model="${OPENAI_MODEL:gpt-3.5-turbo}",
    url="${OPENAI_API_URL:https://api.openai.com/v1/chat/completions}",
    api_key="${OPENAI_API_KEY}",
)
class Person(BaseModel):
    name: str = Field(description="人的名字，2-4个汉字")
    age: int = Field(description="年龄，范围在18-100之间")
    occupation: str = Field(description="职业描述，例如：工程师、医生、教师等")


def show_event(event: ae.InvocationEvent) -> None:
    if event.kind == "response":
        print(f"  <- HTTP {event.status_code}")


with ae.EntityFactory.for_model(Person, observer=show_event) as factory:
    print("create_one:")
    print(f"  {factory.create_one('创建一个名为张三的人，年龄30岁，职业是工程师')!r}")

    print("create_many:")
    for person in factory.create_many("创建三个人：李四，25岁，学生；王五，35岁，医生；赵六，40岁，教师"):
        print(f"  {person!r}")

    with tempfile.TemporaryDirectory() as tmp:
        source = Path(tmp) / "test_input.txt"
        source.write_text("创建两个人：小明，20岁，学生；小红，22岁，学生", encoding="utf-8")
        print("create_many_from_source:")
        for person in factory.create_many_from_source(source):
            print(f"  {person!r}")

    try:
        factory.create_many_from_source("non_existent.txt")
    except ae.SourceUnavailableError as exc:
        print(f"missing file: {exc}")
