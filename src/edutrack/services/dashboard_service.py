from __future__ import annotations

from typing import Any, Awaitable, Callable

from edutrack.guard.request_guard import HandlerContext
from edutrack.repositories.dashboard_repository import DashboardRepository, days_ago
from edutrack.repositories.mongo import id_match, ids_match
from edutrack.utils.time_utils import utc_now


SectionHandler = Callable[[DashboardRepository, HandlerContext], Awaitable[Any]]

_PERSON = {"first_name": 1, "last_name": 1, "email": 1, "avatar": 1, "created_at": 1}


# ----------------------------
# Principal
# ----------------------------


async def principal_stats(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    sid = ctx.tenant_id
    return {
        "students": await repo.count("users", sid, {"role": "STUDENT", "is_active": True}),
        "teachers": await repo.count("users", sid, {"role": "TEACHER", "is_active": True}),
        "parents": await repo.count("users", sid, {"role": "PARENT", "is_active": True}),
        "classes": await repo.count("classes", sid),
    }


async def principal_teachers(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    teachers = await repo.find(
        "users",
        ctx.tenant_id,
        {"role": "TEACHER", "is_active": True},
        sort=[("created_at", -1)],
        limit=5,
        projection={**_PERSON, "department": 1},
    )
    return {"teachers": teachers}


async def principal_classes(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    classes = await repo.find("classes", ctx.tenant_id, sort=[("grade", 1), ("name", 1)], limit=200)
    return {"classes": classes, "total": len(classes)}


async def principal_subjects(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    return {"subjects": await repo.find("subjects", ctx.tenant_id, sort=[("name", 1)], limit=200)}


async def principal_average_grade(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    rows = await repo.aggregate(
        "grades",
        ctx.tenant_id,
        [
            {"$match": {"max_points": {"$gt": 0}}},
            {
                "$group": {
                    "_id": None,
                    "avg": {"$avg": {"$divide": ["$points", "$max_points"]}},
                    "n": {"$sum": 1},
                }
            },
        ],
    )
    if not rows:
        return {"averagePercent": None, "gradedItems": 0}
    return {"averagePercent": round(rows[0]["avg"] * 100, 1), "gradedItems": rows[0]["n"]}


async def principal_activity(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find("activity", ctx.tenant_id, sort=[("created_at", -1)], limit=10)
    return {"activity": items}


async def principal_alerts(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "alerts", ctx.tenant_id, {"resolved": {"$ne": True}}, sort=[("created_at", -1)], limit=20
    )
    return {"alerts": items}


async def principal_events(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    now = utc_now()
    items = await repo.find("events", ctx.tenant_id, {"starts_at": {"$gte": now}}, sort=[("starts_at", 1)], limit=10)
    return {"events": items}


async def principal_fee_records(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    rows = await repo.aggregate(
        "fee_records",
        ctx.tenant_id,
        [{"$group": {"_id": "$status", "amount": {"$sum": "$amount"}, "count": {"$sum": 1}}}],
    )
    return {"byStatus": {str(r["_id"]): {"amount": r["amount"], "count": r["count"]} for r in rows}}


# ----------------------------
# Teacher
# ----------------------------


async def teacher_stats(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    tid = id_match(ctx.principal.id)
    classes = await repo.find("class_subjects", ctx.tenant_id, {"teacher_id": tid}, projection={"class_id": 1})
    class_ids = sorted({c["class_id"] for c in classes if c.get("class_id")})
    students = await repo.count("enrollments", ctx.tenant_id, {"class_id": ids_match(class_ids), "status": "ACTIVE"})
    pending = await repo.count("submissions", ctx.tenant_id, {"teacher_id": tid, "graded": False})
    return {"classes": len(class_ids), "students": students, "pendingGrading": pending}


async def teacher_classes_today(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    weekday = utc_now().isoweekday()
    meetings = await repo.find(
        "class_meetings",
        ctx.tenant_id,
        {"teacher_id": id_match(ctx.principal.id), "day_of_week": weekday},
        sort=[("start_time", 1)],
    )
    return {"classes": meetings}


async def teacher_pending_tasks(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "submissions",
        ctx.tenant_id,
        {"teacher_id": id_match(ctx.principal.id), "graded": False},
        sort=[("submitted_at", 1)],
        limit=20,
    )
    return {"tasks": items}


async def teacher_alerts(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "alerts",
        ctx.tenant_id,
        {"audience": ids_match(["TEACHER", ctx.principal.id]), "resolved": {"$ne": True}},
        sort=[("created_at", -1)],
        limit=20,
    )
    return {"alerts": items}


# ----------------------------
# Student
# ----------------------------


async def student_stats(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    sid = id_match(ctx.principal.id)
    return {
        "classes": await repo.count("enrollments", ctx.tenant_id, {"student_id": sid, "status": "ACTIVE"}),
        "dueAssignments": await repo.count(
            "assignments", ctx.tenant_id, {"student_ids": sid, "due_at": {"$gte": utc_now()}}
        ),
        "absencesLast30Days": await repo.count(
            "attendance", ctx.tenant_id, {"student_id": sid, "status": "ABSENT", "date": {"$gte": days_ago(30)}}
        ),
    }


async def student_grades(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "grades", ctx.tenant_id, {"student_id": id_match(ctx.principal.id)}, sort=[("graded_at", -1)], limit=100
    )
    return {"grades": items}


async def student_attendance(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "attendance",
        ctx.tenant_id,
        {"student_id": id_match(ctx.principal.id), "date": {"$gte": days_ago(90)}},
        sort=[("date", -1)],
        limit=200,
    )
    present = sum(1 for i in items if i.get("status") == "PRESENT")
    rate = round(present * 100 / len(items), 1) if items else None
    return {"records": items, "attendanceRate": rate}


async def student_schedule(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    enrollments = await repo.find(
        "enrollments", ctx.tenant_id, {"student_id": id_match(ctx.principal.id), "status": "ACTIVE"}, projection={"class_id": 1}
    )
    class_ids = [e["class_id"] for e in enrollments if e.get("class_id")]
    meetings = await repo.find(
        "class_meetings",
        ctx.tenant_id,
        {"class_id": ids_match(class_ids)},
        sort=[("day_of_week", 1), ("start_time", 1)],
        limit=200,
    )
    return {"schedule": meetings}


async def student_announcements(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    items = await repo.find(
        "announcements",
        ctx.tenant_id,
        {"audience": {"$in": ["ALL", "STUDENT"]}},
        sort=[("published_at", -1)],
        limit=20,
    )
    return {"announcements": items}


# ----------------------------
# Parent
# ----------------------------


async def parent_children(repo: DashboardRepository, ctx: HandlerContext) -> dict:
    links = await repo.find(
        "parent_child", ctx.tenant_id, {"parent_id": id_match(ctx.principal.id)}, projection={"child_id": 1}
    )
    child_ids = [link["child_id"] for link in links if link.get("child_id")]
    if not child_ids:
        return {"children": []}
    children = await repo.find(
        "users",
        ctx.tenant_id,
        {"external_id": ids_match(child_ids), "role": "STUDENT"},
        projection={**_PERSON, "grade": 1, "external_id": 1},
    )
    return {"children": children}


SECTION_HANDLERS: dict[str, SectionHandler] = {
    "dashboard.principal.stats": principal_stats,
    "dashboard.principal.teachers": principal_teachers,
    "dashboard.principal.classes": principal_classes,
    "dashboard.principal.subjects": principal_subjects,
    "dashboard.principal.average-grade": principal_average_grade,
    "dashboard.principal.activity": principal_activity,
    "dashboard.principal.alerts": principal_alerts,
    "dashboard.principal.events": principal_events,
    "dashboard.principal.fee-records": principal_fee_records,
    "dashboard.teacher.stats": teacher_stats,
    "dashboard.teacher.classes-today": teacher_classes_today,
    "dashboard.teacher.pending-tasks": teacher_pending_tasks,
    "dashboard.teacher.alerts": teacher_alerts,
    "dashboard.student.stats": student_stats,
    "dashboard.student.grades": student_grades,
    "dashboard.student.attendance": student_attendance,
    "dashboard.student.schedule": student_schedule,
    "dashboard.student.announcements": student_announcements,
    "dashboard.parent.children": parent_children,
}
