"""CLI entry point for the price comparison app."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import sqlite3
import sys
from dataclasses import asdict
from pathlib import Path

from dotenv import load_dotenv

from .camera import ProductCamera
from .capture import CaptureSession, CaptureStep
from .config import MubuConfig, load_config
from .vision import create_backend


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mubu",
        description="무부: 해외에서 찍은 상품을 한국 최저가와 비교합니다",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="설정 파일 경로 (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="디버그 로그 출력"
    )

    sub = parser.add_subparsers(dest="command")

    # cameras
    sub.add_parser("cameras", help="사용 가능한 카메라 목록")

    # analyze
    analyze_parser = sub.add_parser("analyze", help="상품 사진 분석")
    analyze_parser.add_argument("--image", type=str, help="기존 이미지 파일 사용")
    analyze_parser.add_argument(
        "--price-tag", type=str, default=None, metavar="FILE",
        help="가격표 사진 (가격이 감지되지 않았을 때)",
    )
    analyze_parser.add_argument("--json", action="store_true", help="JSON 형식으로 출력")

    # compare
    compare_parser = sub.add_parser("compare", help="촬영→분석→한국 가격 비교")
    compare_parser.add_argument("--image", type=str, help="기존 이미지 파일 사용")
    compare_parser.add_argument(
        "--price-tag", type=str, default=None, metavar="FILE",
        help="가격표 사진 (가격이 감지되지 않았을 때)",
    )
    compare_parser.add_argument(
        "--price", type=str, default=None, help="가격 직접 입력 (예: 1,200)"
    )
    compare_parser.add_argument(
        "--currency", type=str, default="THB", help="직접 입력한 가격의 통화"
    )
    compare_parser.add_argument(
        "--quantity", "-q", type=int, default=1, help="구매 수량 (1~99)"
    )
    compare_parser.add_argument("--user", type=str, default=None, help="로그인 사용자 ID")
    compare_parser.add_argument("--session", type=str, default=None, help="익명 세션 ID")
    compare_parser.add_argument(
        "--no-save", action="store_true", help="기록을 저장하지 않음"
    )
    compare_parser.add_argument("--json", action="store_true", help="JSON 형식으로 출력")

    # history
    history_parser = sub.add_parser("history", help="비교 기록과 절약 요약")
    history_parser.add_argument("--user", type=str, default=None, help="계정 기록 조회")
    history_parser.add_argument("--limit", type=int, default=10)
    history_parser.add_argument("--json", action="store_true", help="JSON 형식으로 출력")

    # usage
    usage_parser = sub.add_parser("usage", help="사용량 확인")
    usage_parser.add_argument("--user", type=str, default=None, help="로그인 사용자 ID")
    usage_parser.add_argument("--session", type=str, default=None, help="익명 세션 ID")
    usage_parser.add_argument(
        "--reset", action="store_true", help="이 기기의 사용량 초기화"
    )
    usage_parser.add_argument(
        "--sync", action="store_true", help="계정 사용량으로 기기 사용량 덮어쓰기"
    )
    usage_parser.add_argument("--json", action="store_true", help="JSON 형식으로 출력")

    # rates
    rates_parser = sub.add_parser("rates", help="환율 조회 및 변환")
    rates_parser.add_argument("currency", type=str, help="통화 코드 (예: THB)")
    rates_parser.add_argument("--to", type=str, default=None, help="변환 대상 통화")
    rates_parser.add_argument("--amount", type=float, default=None, help="변환할 금액")

    # search
    search_parser = sub.add_parser("search", help="한국 쇼핑 최저가 검색")
    search_parser.add_argument("query", type=str, help="상품명")
    search_parser.add_argument("--max", type=int, default=None, dest="max_results")
    search_parser.add_argument("--json", action="store_true", help="JSON 형식으로 출력")

    # plans
    sub.add_parser("plans", help="프리미엄 요금제 목록")

    # report
    report_parser = sub.add_parser("report", help="절약 리포트 PDF 생성")
    report_parser.add_argument(
        "--pdf", type=str, required=True, metavar="FILE", help="PDF 파일 경로"
    )
    report_parser.add_argument("--user", type=str, default=None, help="계정 기록 사용")
    report_parser.add_argument("--goal", type=int, default=500_000, help="목표 절약 금액 (원)")
    report_parser.add_argument(
        "--drive", action="store_true", help="저장소(Google Drive 등)에 업로드"
    )

    # scheduler
    sub.add_parser("scheduler", help="정기 유지보수 작업 실행")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (ValueError, ImportError) as e:
        print(f"설정 오류: {e}", file=sys.stderr)
        sys.exit(1)

    match args.command:
        case "cameras":
            _cmd_cameras()
        case "analyze":
            asyncio.run(_cmd_analyze(config, args))
        case "compare":
            asyncio.run(_cmd_compare(config, args))
        case "history":
            _cmd_history(config, args)
        case "usage":
            _cmd_usage(config, args)
        case "rates":
            asyncio.run(_cmd_rates(config, args))
        case "search":
            asyncio.run(_cmd_search(config, args))
        case "plans":
            _cmd_plans()
        case "report":
            _cmd_report(config, args)
        case "scheduler":
            _cmd_scheduler(config)


def _cmd_cameras() -> None:
    cameras = ProductCamera.list_cameras()
    if not cameras:
        print("사용 가능한 카메라를 찾지 못했습니다.")
        return
    print(f"사용 가능한 카메라: {len(cameras)} 대")
    for idx in cameras:
        print(f"  카메라 {idx}")


def _read_image(config: MubuConfig, path: str | None, label: str) -> tuple[bytes, str]:
    if path:
        mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
        return Path(path).read_bytes(), mime_type

    camera = ProductCamera(
        camera_index=config.camera.index, save_dir=config.camera.save_dir
    )
    print("📷 촬영 중...")
    shot = camera.capture(label)
    print(f"   저장: {shot.image_path}")
    return shot.image, shot.mime_type


async def _run_capture(config: MubuConfig, args) -> CaptureSession | None:
    """Analyze the product photo and, if needed, the price tag photo."""
    image, mime_type = _read_image(config, args.image, "product")
    session = CaptureSession(create_backend(config))

    print("🔍 상품 분석 중...")
    analysis = await session.analyze(image, mime_type)
    if analysis is None:
        print(session.error, file=sys.stderr)
        return None
    if session.product_missing:
        print("사진에서 상품을 찾지 못했습니다. 다시 촬영해주세요.", file=sys.stderr)
        return None

    if session.step is CaptureStep.PRICE_MANUAL and args.price_tag:
        session.begin_price_tag_capture()
        tag_image, tag_mime = _read_image(config, args.price_tag, "price_tag")
        print("🏷  가격표 인식 중...")
        await session.analyze_price_tag(tag_image, tag_mime)
        if session.error:
            print(session.error, file=sys.stderr)
    return session


def _analysis_dict(session: CaptureSession) -> dict:
    data = asdict(session.analysis)
    data["step"] = session.step.value
    return data


async def _cmd_analyze(config: MubuConfig, args) -> None:
    session = await _run_capture(config, args)
    if session is None:
        sys.exit(1)

    if args.json:
        print(json.dumps(_analysis_dict(session), ensure_ascii=False, indent=2))
        return

    product = session.analysis.product
    tag = session.analysis.price_tag
    print(f"\n🛍  {product.name}")
    if product.name_korean and product.name_korean != product.name:
        print(f"   한국어: {product.name_korean}")
    if product.brand:
        print(f"   브랜드: {product.brand}")
    if product.description:
        print(f"   {product.description}")
    print(f"   신뢰도: {session.analysis.confidence:.0%}")
    if tag.detected and tag.price:
        print(f"   가격: {tag.currency_symbol or ''}{tag.price:,} {tag.currency or ''}")
    else:
        print("   가격표를 찾지 못했습니다. --price 로 직접 입력하세요.")


def _build_pipeline(config: MubuConfig):
    from .affiliate import AffiliateLinkService
    from .db import ComparisonDB, LocalComparisonDB, UserDB
    from .exchange import CurrencyConverter
    from .objectstore import create_storage
    from .pipeline import PriceComparisonPipeline
    from .shopping import create_search
    from .usage.account import AccountUsageTracker
    from .usage.local import LocalUsageTracker, SQLiteUsageStore

    affiliate = AffiliateLinkService(
        coupang_partner_id=config.affiliate.coupang_partner_id,
        naver_affiliate_id=config.affiliate.naver_affiliate_id,
        app_url=config.affiliate.app_url,
    )
    users = UserDB(config.database.account_path)
    pipeline = PriceComparisonPipeline(
        converter=_converter(config, CurrencyConverter),
        search=create_search(config, affiliate),
        local_comparisons=LocalComparisonDB(config.database.device_path),
        account_comparisons=ComparisonDB(config.database.account_path),
        local_usage=LocalUsageTracker(
            SQLiteUsageStore(config.database.device_path),
            config.usage.soft_wall_at,
            config.usage.hard_wall_at,
        ),
        account_usage=AccountUsageTracker(
            users, config.usage.soft_wall_at, config.usage.hard_wall_at
        ),
        object_storage=create_storage(config),
        home_currency=config.exchange.home_currency,
        max_results=config.shopping.max_results,
    )
    return pipeline, users


def _converter(config: MubuConfig, cls):
    return cls(
        primary_url=config.exchange.primary_url,
        fallback_url=config.exchange.fallback_url,
        cache_ttl=config.exchange.cache_ttl,
        timeout=config.http.timeout,
        retries=config.http.retries,
    )


def _print_usage_notice(result, user=None) -> None:
    from .usage import WallState

    check = result.account_usage
    signed_in = user is not None and user.is_authenticated
    if not check.allowed:
        print("\n🔒 오늘 무료 사용량을 모두 썼어요. 프리미엄으로 계속 비교하세요 (mubu plans).")
    elif not signed_in and (check.needs_login or result.local_stats.needs_login):
        print("\n🙌 로그인하면 절약 기록을 계정에 안전하게 보관할 수 있어요.")
    elif result.local_stats.state is WallState.HARD_WALL:
        print("\n🔒 이 기기의 무료 사용량을 초과했어요. 프리미엄을 확인해보세요.")


async def _cmd_compare(config: MubuConfig, args) -> None:
    session = await _run_capture(config, args)
    if session is None:
        sys.exit(1)

    try:
        if args.price is not None:
            capture = session.submit_manual_price(args.price, args.currency)
        elif session.step is CaptureStep.PRICE_CONFIRM:
            capture = session.confirm_price()
        else:
            print("가격을 인식하지 못했습니다. --price 로 직접 입력하세요.", file=sys.stderr)
            sys.exit(1)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    pipeline, users = _build_pipeline(config)
    try:
        user = None
        if args.user:
            user = users.get_user(args.user)
            if user is None:
                print(f"사용자를 찾을 수 없습니다: {args.user}", file=sys.stderr)
                sys.exit(1)

        print("💱 환율 변환 및 한국 가격 검색 중...")
        image_url = "" if args.no_save else await pipeline.upload_image(capture)
        outcome = await pipeline.compare(capture, image_url)
        record = outcome.record
        result = None
        if not args.no_save:
            result = pipeline.confirm(outcome, user=user, session_id=args.session)
    finally:
        users.close()

    if args.json:
        data = {
            "record": asdict(record),
            "tier": outcome.message.tier.value,
            "message": outcome.message.text,
        }
        if result is not None:
            data["usage"] = {
                "device_uses": result.local_stats.uses,
                "device_state": result.local_stats.state.value,
                "allowed": result.account_usage.allowed,
                "remaining": result.account_usage.remaining,
            }
        print(json.dumps(data, ensure_ascii=False, indent=2, default=str))
        return

    from .exchange import currency_symbol
    from .savings import ComparisonView

    print(f"\n🛍  {record.product_name}")
    print(
        f"   현지 가격: {currency_symbol(record.local_currency)}"
        f"{record.local_price:,} ({record.local_currency})"
    )
    print(f"   원화 환산: ₩{record.converted_local_price:,}")
    if record.has_korean_price:
        print(f"   한국 최저가: ₩{record.korean_price:,} ({record.comparison_source})")
        print(f"   절약: ₩{record.savings_amount:,}")
        if record.product_link:
            print(f"   링크: {record.product_link}")
    else:
        print(f"   {record.comparison_source}")
    if args.quantity > 1:
        view = ComparisonView(record, args.quantity)
        print(f"\n   {view.quantity}개 기준: {view.savings_label()} ({view.percentage:.1f}%)")
        print(f"\n👉 {view.message().text}")
    else:
        print(f"\n👉 {outcome.message.text}")

    if result is not None:
        _print_usage_notice(result, user)


def _cmd_history(config: MubuConfig, args) -> None:
    from .dashboard import SavingsSummary
    from .db import ComparisonDB, LocalComparisonDB

    if args.user:
        db = ComparisonDB(config.database.account_path)
        try:
            records = db.get_user_comparisons(args.user, limit=args.limit)
        finally:
            db.close()
    else:
        db = LocalComparisonDB(config.database.device_path)
        try:
            records = db.get_comparisons(limit=args.limit)
        finally:
            db.close()

    summary = SavingsSummary.from_records(records)

    if args.json:
        data = {
            "total_savings": summary.total_savings,
            "comparison_count": summary.comparison_count,
            "progress": summary.progress,
            "records": [asdict(r) for r in records],
        }
        print(json.dumps(data, ensure_ascii=False, indent=2, default=str))
        return

    if not records:
        print("아직 비교 기록이 없습니다.")
        return
    print(summary.display())
    print(f"\n최근 비교 ({len(records)} 건):")
    for r in records:
        saving = f"₩{r.savings_amount:,}" if r.has_korean_price else "-"
        print(f"  {r.created_at[:10]}  {r.product_name:<24} {saving:>10}  {r.comparison_source}")


def _cmd_usage(config: MubuConfig, args) -> None:
    from .db import UserDB
    from .usage.account import AccountUsageTracker
    from .usage.local import LocalUsageTracker, SQLiteUsageStore

    store = SQLiteUsageStore(config.database.device_path)
    users = UserDB(config.database.account_path)
    try:
        local = LocalUsageTracker(
            store, config.usage.soft_wall_at, config.usage.hard_wall_at
        )
        account = AccountUsageTracker(
            users, config.usage.soft_wall_at, config.usage.hard_wall_at
        )

        if args.reset:
            local.reset()
            print("이 기기의 사용량을 초기화했습니다.")
            return

        check = account.current_usage(args.user, args.session)
        stats = local.stats()
        if args.sync and (args.user or args.session):
            try:
                server = account.server_state(args.user, args.session)
            except (LookupError, sqlite3.Error) as e:
                print(f"동기화 실패: {e}", file=sys.stderr)
                sys.exit(1)
            stats = local.sync_from_server(server)
    finally:
        store.close()
        users.close()

    if args.json:
        data = {
            "device": {
                "uses": stats.uses,
                "total_savings": stats.total_savings,
                "state": stats.state.value,
                "last_used": stats.last_used,
            },
            "account": {
                "allowed": check.allowed,
                "state": check.state.value,
                "current_usage": check.current_usage,
                "daily_limit": check.daily_limit,
                "remaining": check.remaining,
                "reset_time": check.reset_time,
            },
        }
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    print(f"이 기기: {stats.uses}회 사용, 누적 ₩{stats.total_savings:,.0f} ({stats.state.value})")
    if args.user or args.session:
        limit = "무제한" if check.daily_limit is None else f"{check.daily_limit}회"
        print(f"계정 오늘 사용량: {check.current_usage}회 / {limit}")
        if check.remaining is not None:
            print(f"남은 횟수: {check.remaining}회 (초기화: {check.reset_time})")


async def _cmd_rates(config: MubuConfig, args) -> None:
    from .exchange import CurrencyConverter, currency_symbol

    converter = _converter(config, CurrencyConverter)
    src = args.currency.upper()
    dst = (args.to or config.exchange.home_currency).upper()
    try:
        if args.amount is not None:
            conv = await converter.convert(args.amount, src, dst)
            print(
                f"{currency_symbol(src)}{conv.amount:,} {src} = "
                f"{currency_symbol(dst)}{conv.converted_amount:,} {dst} "
                f"(1 {src} = {conv.rate:.4f} {dst})"
            )
        else:
            rate = await converter.get_exchange_rate(src, dst)
            print(f"1 {src} = {rate:.4f} {dst}")
    except (ValueError, RuntimeError) as e:
        print(f"환율 오류: {e}", file=sys.stderr)
        sys.exit(1)


async def _cmd_search(config: MubuConfig, args) -> None:
    from .affiliate import AffiliateLinkService
    from .relevance import is_relevant
    from .shopping import create_search

    affiliate = AffiliateLinkService(
        coupang_partner_id=config.affiliate.coupang_partner_id,
        naver_affiliate_id=config.affiliate.naver_affiliate_id,
        app_url=config.affiliate.app_url,
    )
    search = create_search(config, affiliate)
    max_results = args.max_results or config.shopping.max_results
    try:
        items = await search.search(args.query, max_results)
    except (ValueError, RuntimeError) as e:
        print(f"검색 오류: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        data = [
            {**asdict(i), "relevant": is_relevant(args.query, i.product_name, i.brand)}
            for i in items
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if not items:
        print("검색 결과가 없습니다.")
        return
    print(f"'{args.query}' 검색 결과 ({len(items)} 건):")
    for i in items:
        mark = "✓" if is_relevant(args.query, i.product_name, i.brand) else " "
        print(f"  {mark} ₩{i.price:>10,}  {i.product_name}  [{i.mall_name}]")


def _cmd_plans() -> None:
    from .payment import PLANS

    print("프리미엄 요금제:")
    for plan in PLANS.values():
        print(f"\n  {plan.name} ({plan.id}) ₩{plan.price:,}")
        for feature in plan.features:
            print(f"    - {feature}")


def _cmd_report(config: MubuConfig, args) -> None:
    from .dashboard import SavingsSummary
    from .db import ComparisonDB, LocalComparisonDB
    from .pdf import generate_report

    if args.user:
        db = ComparisonDB(config.database.account_path)
        try:
            records = db.get_user_comparisons(args.user, limit=100)
        finally:
            db.close()
    else:
        db = LocalComparisonDB(config.database.device_path)
        try:
            records = db.get_comparisons()
        finally:
            db.close()

    try:
        summary = SavingsSummary.from_records(records, goal=args.goal)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    print("📄 PDF 생성 중...")
    try:
        pdf_path = generate_report(summary, records, args.pdf)
    except (ImportError, FileNotFoundError) as e:
        print(f"PDF 생성 오류: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"   PDF 저장: {pdf_path}")

    if args.drive:
        from .objectstore import create_storage

        print("☁  업로드 중...")
        try:
            storage = create_storage(config)
            url = storage.upload(pdf_path.read_bytes(), pdf_path.name, "application/pdf")
            print(f"   업로드 완료: {url}")
        except (ImportError, FileNotFoundError, ValueError) as e:
            print(f"업로드 오류: {e}", file=sys.stderr)


def _cmd_scheduler(config: MubuConfig) -> None:
    from .scheduler import MaintenanceScheduler

    async def run() -> None:
        scheduler = MaintenanceScheduler(config)
        scheduler.start()
        for job in scheduler.get_jobs():
            print(f"  {job['name']} ({job['id']}): 다음 실행 {job['next_run']}")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    print("⏰ 스케줄러 실행 중 (Ctrl+C 로 종료)")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\n스케줄러를 종료했습니다.")
