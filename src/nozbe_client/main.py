"""
Nozbe クライアント コマンドラインエントリーポイント

結果は JSON として標準出力に書き出す
"""
import argparse
import getpass
import json
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from .business.config_manager import ConfigManager
from .business.session_manager import SessionManager
from .data.nozbe_client import ACTION_FILTERS
from .utils.error_handler import handle_error, get_error_suggestions
from .utils.logger import initialize_logging, PerformanceLogger


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを作成"""
    parser = argparse.ArgumentParser(prog='nozbe', description='Nozbe API command line client')
    parser.add_argument('--config-dir', help='設定ディレクトリ（既定: ~/.nozbe_client）')
    parser.add_argument('--debug', action='store_true', help='デバッグログを有効にする')
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('--verbose', action='store_true', help='DEBUG レベルでログ出力')
    verbosity.add_argument('--quiet', action='store_true', help='WARNING 以上のみログ出力')

    subparsers = parser.add_subparsers(dest='command', required=True)

    login = subparsers.add_parser('login', help='ログインして API キーを保存')
    login.add_argument('email')
    login.add_argument('--password', help='省略時は対話的に入力')

    subparsers.add_parser('logout', help='保存済みの API キーを削除')

    for name in ('projects', 'contexts'):
        resource = subparsers.add_parser(name, help=f'{name} の一覧を表示')
        resource.add_argument('--names', action='store_true', help='id -> name の対応のみ表示')

    actions = subparsers.add_parser('actions', help='アクションの一覧を表示')
    actions.add_argument('what', choices=ACTION_FILTERS)
    actions.add_argument('id', nargs='?')
    actions.add_argument('--show-done', action='store_true', default=None, help='完了済みも含める')
    actions.add_argument('--names', action='store_true', help='id -> name の対応のみ表示')

    add = subparsers.add_parser('add', help='アクションを追加')
    add.add_argument('name')
    add.add_argument('--project', dest='project_id')
    add.add_argument('--context', dest='context_id')
    add.add_argument('--time')
    add.add_argument('--not-next', dest='next', action='store_false')

    done = subparsers.add_parser('done', help='アクションを完了にする')
    done.add_argument('ids', nargs='+')

    return parser


def _redact_argv(argv: List[str]) -> List[str]:
    """ログ出力用にパスワード引数を伏せ字にする"""
    redacted = []
    hide_next = False
    for arg in argv:
        if hide_next:
            redacted.append('****')
            hide_next = False
        elif arg.startswith('--') and '--password'.startswith(arg.split('=', 1)[0]) and len(arg) > 2:
            # argparse は省略形（--pass など）も受け付ける
            if '=' in arg:
                redacted.append(arg.split('=', 1)[0] + '=****')
            else:
                redacted.append(arg)
                hide_next = True
        else:
            redacted.append(arg)
    return redacted


def _print_json(data: Any, indent: int = 2):
    print(json.dumps(data, indent=indent, ensure_ascii=False))


def run_command(args: argparse.Namespace, session: SessionManager) -> int:
    """
    サブコマンドを実行

    Returns:
        終了コード
    """
    indent = session.app_config.output.indent

    if args.command == 'login':
        password = args.password if args.password is not None else getpass.getpass('Password: ')
        session.login(args.email, password)
        _print_json({'logged_in': True, 'email': args.email}, indent)
        return 0

    if args.command == 'logout':
        session.logout()
        _print_json({'logged_in': False}, indent)
        return 0

    client = session.create_client()

    if args.command == 'projects':
        result = client.get_project_names() if args.names else client.get_projects()
    elif args.command == 'contexts':
        result = client.get_context_names() if args.names else client.get_contexts()
    elif args.command == 'actions':
        shows_done = args.show_done if args.show_done is not None else session.app_config.output.show_done
        if args.what == 'next':
            actions = client.get_next_actions()
        else:
            actions = client.get_actions(args.what, args.id, shows_done)
        if args.names:
            result = {action['id']: action['name'] for action in actions}
        else:
            result = actions
    elif args.command == 'add':
        result = client.add_action(args.name, args.project_id, args.context_id, args.time, args.next)
    elif args.command == 'done':
        # サーバーは不正な ID でも ok を返すことがある
        result = {'response': 'ok' if client.done_actions(args.ids) else 'failed', 'ids': args.ids}
    else:
        raise ValueError(f"unknown command: {args.command}")

    _print_json(result, indent)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """メインアプリケーション実行関数"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'actions' and args.what != 'next' and args.id is None:
        parser.error(f"actions {args.what}: ID を指定してください")
    if args.command == 'actions' and args.what == 'next' and (args.id is not None or args.show_done):
        parser.error("actions next: ID と --show-done は指定できません")

    debug_mode = (
        os.getenv('NOZBE_CLIENT_DEBUG', '').lower() in ('1', 'true', 'yes') or
        args.debug
    )

    log_level = "DEBUG" if debug_mode else "INFO"
    if args.verbose:
        log_level = "DEBUG"
    elif args.quiet:
        log_level = "WARNING"

    config_dir = args.config_dir
    log_dir = str(Path(config_dir) / 'logs') if config_dir else None
    logger = initialize_logging(log_dir=log_dir, level=log_level, debug_mode=debug_mode)
    logger.debug(f"起動引数: {_redact_argv(argv if argv is not None else sys.argv[1:])}")

    try:
        session = SessionManager(ConfigManager(config_dir))
        with PerformanceLogger(f"コマンド実行: {args.command}"):
            return run_command(args, session)

    except KeyboardInterrupt:
        logger.info("ユーザーにより中断されました")
        return 0

    except Exception as error:
        error_message = handle_error(error, f"コマンド実行: {args.command}")
        print(error_message, file=sys.stderr)
        for suggestion in get_error_suggestions(error):
            print(f"  - {suggestion}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
