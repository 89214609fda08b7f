"""aientity demo: offline, with canned model replies instead of a live endpoint."""

from pydantic import BaseModel, Field

import aientity as ae

# ── Define a record type ─────────────────────────────────────────────


@ae.ai_entity(model="demo-model", url="http://localhost:8080/v1/chat/completions")
class Person(BaseModel):
    name: str = Field(description="人的名字，2-4个汉字")
    age: int = Field(description="年龄，范围在18-100之间")
    occupation: str = Field(description="职业描述，例如：工程师、医生、教师等")


schema = ae.schema_for(Person)
print("System prompt:")
print(f"  {ae.build_system_prompt(schema)}")
print()

# ── 1. One record ────────────────────────────────────────────────────

invoker = ae.StaticInvoker(['{"name": "张三", "age": 30, "occupation": "工程师"}'])
with ae.EntityFactory.for_model(Person, invoker=invoker) as factory:
    person = factory.create_one("创建一个名为张三的人，年龄30岁，职业是工程师")
print(f"create_one: {person!r}")

# ── 2. Many records, whatever wrapper the model picks ────────────────

replies = [
    '[{"name": "李四", "age": 25, "occupation": "学生"}]',
    '{"persons": [{"name": "王五", "age": 35, "occupation": "医生"}]}',
    '{"data": [{"name": "赵六", "age": 40, "occupation": "教师"}]}',
]
for reply in replies:
    factory = ae.EntityFactory.for_model(Person, invoker=ae.StaticInvoker([reply]))
    print(f"create_many <- {reply[:12]}...: {factory.create_many('一些人')!r}")

# ── 3. Errors are typed ──────────────────────────────────────────────

try:
    factory.create_one("   ")
except ae.EmptyInputError as exc:
    print(f"empty input rejected before any request: {exc}")

bad = ae.EntityFactory.for_model(Person, invoker=ae.StaticInvoker(['{"age": "unknown"}']))
try:
    bad.create_one("someone")
except ae.FieldMappingError as exc:
    print(f"field {exc.field!r} could not be mapped: {exc}")
