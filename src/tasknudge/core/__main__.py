"""CLI 入口模块 -- python -m tasknudge.core <command>

支持的命令：
  ensure-deliveries [org]  对组织执行一次调度 pass（不指定时遍历所有组织）
"""

import asyncio
import sys

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m tasknudge.core <command> [args]")
        print("命令:")
        print("  ensure-deliveries [org]  为组织物化到期提醒 delivery")
        sys.exit(1)

    command = sys.argv[1]

    if command == "ensure-deliveries":
        organization_id = sys.argv[2] if len(sys.argv) > 2 else None
        asyncio.run(ensure_deliveries(organization_id))
    else:
        print(f"未知命令: {command}")
        print("可用命令: ensure-deliveries")
        sys.exit(1)


async def ensure_deliveries(organization_id: str | None = None) -> int:
    """执行调度 pass，返回新建 delivery 总数"""
    from .scheduler import DeliveryScheduler
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        scheduler = DeliveryScheduler(
            store_group.delivery_store,
            store_group.task_fact_store,
            store_group.preference_store,
        )
        if organization_id:
            organizations = [organization_id]
        else:
            organizations = await store_group.task_fact_store.list_organizations_with_open_tasks()

        created = 0
        for org in organizations:
            count = await scheduler.ensure_delivery_records_for_organization(org)
            print(f"组织 {org}: 新建 {count} 条 delivery")
            created += count
        print(f"完成，共处理 {len(organizations)} 个组织，新建 {created} 条 delivery")
        return created
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
