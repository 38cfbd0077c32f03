"""
Nozbe API クライアント

Nozbe の HTTP+JSON API との通信を担当するクライアントクラス。
パラメータはクエリ文字列ではなく URL パスのセグメント（name-value/）として送信する。
"""

import json
import requests
import time
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Dict, Any, Optional, Sequence, Tuple, Union
from urllib.parse import quote_plus

from ..utils.error_handler import TransportError, ProtocolError
from ..utils.logger import log_api_request, mask_credentials


Params = Union[Sequence[Tuple[str, Any]], Dict[str, Any]]

# get_actions の what に指定できる値
ACTION_FILTERS = ('next', 'project', 'context')

# サーバーはタイムゾーンを返さないが GMT として扱う
_ZONE_SUFFIXES = (' GMT', ' UTC', 'Z')


def is_truthy(value: Any) -> bool:
    """
    パラメータ省略判定に使う真偽値変換

    None、False、0、0.0、空文字列、文字列 "0" を偽として扱う。
    それ以外は bool() の結果に従う。
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value not in ('', '0')
    return bool(value)


def loose_equals(left: Any, right: Any) -> bool:
    """
    ID 比較用のゆるい等価判定

    同じ値なら等しい。文字列と数値の組み合わせは、文字列が数値として
    解釈できる場合に数値として比較する（"1" と 1 は等しい）。
    """
    if left == right:
        return True

    numeric_types = (int, float)
    if isinstance(left, bool) or isinstance(right, bool):
        return False
    if isinstance(left, str) and isinstance(right, numeric_types):
        left, right = right, left
    if isinstance(left, numeric_types) and isinstance(right, str):
        try:
            return float(right.strip()) == float(left)
        except ValueError:
            return False
    return False


def parse_gmt_timestamp(value: str) -> int:
    """
    日時文字列を GMT とみなしてエポック秒に変換

    タイムゾーン表記が含まれていても無視し、常に GMT として解釈する。

    Raises:
        ValueError: 日時として解釈できない場合
    """
    text = str(value).strip()
    for suffix in _ZONE_SUFFIXES:
        if text.endswith(suffix):
            text = text[:-len(suffix)].strip()
            break

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # RFC 2822 形式（例: "Fri, 06 May 2011 00:00:00"）
        try:
            parsed = parsedate_to_datetime(str(value))
        except (TypeError, ValueError, IndexError):
            raise ValueError(f"日時として解釈できません: {value!r}")

    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


class NozbeClient:
    """
    Nozbe API クライアント

    設定（base_url, http_timeout）とセッション（API キー）を保持し、
    API メソッドごとの型付きファサードを提供する。すべての公開メソッドは call() を経由する。
    """

    DEFAULT_OPTIONS = {
        'base_url': 'http://www.nozbe.com/api',
        'http_timeout': 10,
    }

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        """
        NozbeClient を初期化

        Args:
            options: デフォルト設定に上書きマージするオプション。
                     未知のキーは保持されるが動作には影響しない
        """
        self.options: Dict[str, Any] = dict(self.DEFAULT_OPTIONS)
        self.api_key: Optional[str] = None
        self.timeout: float = self.DEFAULT_OPTIONS['http_timeout']
        self.logger = logging.getLogger(__name__)

        self.configure(**(options or {}))

    def configure(self, **options):
        """
        オプションを現在の設定に上書きマージし、トランスポート設定を更新

        Args:
            **options: base_url, http_timeout（別名 request_timeout_seconds）など
        """
        if 'request_timeout_seconds' in options:
            options['http_timeout'] = options.pop('request_timeout_seconds')

        self.options.update(options)
        self._init_transport()

    def _init_transport(self):
        """全リクエストで使うタイムアウトを準備"""
        self.timeout = self.options['http_timeout']
        self.logger.debug(f"NozbeClient 設定: base_url={self.base_url}, timeout={self.timeout}秒")

    @property
    def base_url(self) -> str:
        return self.options['base_url']

    # 認証

    def login(self, email: str, password: str) -> bool:
        """
        ログインして API キーを取得・保持

        Args:
            email: Nozbe アカウントのメールアドレス
            password: Nozbe アカウントのパスワード

        Returns:
            成功時 True。レスポンスに key が含まれない場合は False
            （保持済みの API キーは変更しない）
        """
        api_key = self.fetch_api_key(email, password)

        if api_key is None:
            self.logger.warning("ログインに失敗しました: レスポンスに API キーがありません")
            return False

        self.api_key = api_key
        self.logger.info("ログインに成功しました")
        return True

    def fetch_api_key(self, email: str, password: str) -> Optional[str]:
        """
        API キーを取得して返す（セッションには保持しない）

        キーを外部にキャッシュして次回の実行で再利用する用途向け。

        Returns:
            API キー。レスポンスに key が含まれない場合は None
        """
        params = [('email', email), ('password', password)]
        data = self.call('login', params, add_api_key=False)

        if not isinstance(data, dict) or data.get('key') is None:
            return None
        return data['key']

    def get_api_key(self) -> Optional[str]:
        return self.api_key

    def set_api_key(self, api_key: Optional[str]) -> Optional[str]:
        # 検証は行わない。次にリクエストが失敗するまでそのまま信頼する
        self.api_key = api_key
        return self.api_key

    # プロジェクト

    def get_projects(self) -> List[Dict[str, Any]]:
        """
        プロジェクト一覧を取得

        Returns:
            サーバーが返したプロジェクトのリスト（未加工）
        """
        return self.call('projects')

    def get_project_names(self) -> Dict[Any, Any]:
        return self._hash_to_key_value(self.get_projects(), 'id', 'name')

    def project_exists(self, id: Any) -> bool:
        return self._find(self.get_projects(), 'id', id)

    # コンテキスト

    def get_contexts(self) -> List[Dict[str, Any]]:
        """
        コンテキスト一覧を取得

        Returns:
            サーバーが返したコンテキストのリスト（未加工）
        """
        return self.call('contexts')

    def get_context_names(self) -> Dict[Any, Any]:
        return self._hash_to_key_value(self.get_contexts(), 'id', 'name')

    def context_exists(self, id: Any) -> bool:
        return self._find(self.get_contexts(), 'id', id)

    # アクション

    def get_next_actions(self) -> List[Dict[str, Any]]:
        return self.get_actions('next')

    def get_next_action_names(self) -> Dict[Any, Any]:
        return self._hash_to_key_value(self.get_next_actions(), 'id', 'name')

    def next_action_exists(self, id: Any) -> bool:
        return self._find(self.get_next_actions(), 'id', id)

    def get_project_actions(self, id: Any, shows_done: bool = False) -> List[Dict[str, Any]]:
        return self.get_actions('project', id, shows_done)

    def get_project_action_names(self, id: Any, shows_done: bool = False) -> Dict[Any, Any]:
        return self._hash_to_key_value(self.get_project_actions(id, shows_done), 'id', 'name')

    def project_action_exists(self, id: Any, include_done_actions: bool = False) -> bool:
        actions = self.get_project_actions(id, include_done_actions)
        return self._find(actions, 'id', id)

    def get_context_actions(self, id: Any, shows_done: bool = False) -> List[Dict[str, Any]]:
        return self.get_actions('context', id, shows_done)

    def get_context_action_names(self, id: Any, shows_done: bool = False) -> Dict[Any, Any]:
        return self._hash_to_key_value(self.get_context_actions(id, shows_done), 'id', 'name')

    def context_action_exists(self, id: Any, include_done_actions: bool = False) -> bool:
        actions = self.get_context_actions(id, include_done_actions)
        return self._find(actions, 'id', id)

    def get_actions(self, what: str, id: Any = None, shows_done: bool = False) -> List[Dict[str, Any]]:
        """
        アクション一覧を取得し、done_time と next を正規化

        Args:
            what: "next"、"project"、"context" のいずれか
            id: プロジェクトまたはコンテキストの ID（None の場合は送信しない）
            shows_done: True の場合のみ完了済みアクションも要求する

        Returns:
            done_time（False またはエポック秒）と next（1 または 0）を書き換えたアクションのリスト

        Raises:
            ProtocolError: アクションに done_time / next が無い、または日時を解釈できない場合
        """
        params: List[Tuple[str, Any]] = [('what', what)]

        if id is not None:
            params.append(('id', id))

        if shows_done is True:
            params.append(('showdone', '1'))

        actions = self.call('actions', params)

        if not isinstance(actions, list):
            raise ProtocolError("アクション一覧のレスポンス形式が不正です", body=actions)

        for action in actions:
            self._normalize_action(action)

        self.logger.debug(f"{len(actions)}件のアクションを取得しました (what={what})")
        return actions

    def _normalize_action(self, action: Dict[str, Any]) -> Dict[str, Any]:
        """アクションの done_time と next をその場で書き換える"""
        if not isinstance(action, dict):
            raise ProtocolError("アクションの形式が不正です", body=action)

        for field in ('done_time', 'next'):
            if field not in action:
                raise ProtocolError(f"アクションに {field} がありません", body=action)

        done_time = action['done_time']
        if done_time == '0' or (type(done_time) is int and done_time == 0):
            action['done_time'] = False
        else:
            try:
                action['done_time'] = parse_gmt_timestamp(done_time)
            except ValueError as e:
                raise ProtocolError(f"done_time を解釈できません: {done_time!r}", body=action,
                                    original_error=e)

        action['next'] = int(action['next'] == 'next')
        return action

    def add_action(self, name: str, project_id: Any = None, context_id: Any = None,
                   time: Any = None, next: Any = True) -> Any:
        """
        アクションを新規作成

        name はクライアント側で URL エンコードしてからパスに埋め込む。
        project_id、context_id、time は真の場合のみ送信する（0 や "0" は未指定と同じ）。

        Args:
            name: アクション名
            project_id: プロジェクト ID
            context_id: コンテキスト ID
            time: 所要時間
            next: 真の場合 next-true を送信する

        Returns:
            サーバーのレスポンス（未加工）。成否の判定は呼び出し側で行う
        """
        params: List[Tuple[str, Any]] = [('name', quote_plus(str(name)))]

        if is_truthy(project_id):
            params.append(('project_id', project_id))

        if is_truthy(context_id):
            params.append(('context_id', context_id))

        if is_truthy(time):
            params.append(('time', time))

        if is_truthy(next):
            params.append(('next', 'true'))

        return self.call('newaction', params)

    def done_actions(self, ids: Sequence[Any]) -> bool:
        """
        アクションを完了にする

        注意: サーバーは不正な ID を含んでいても "ok" を返すことがあるため、
        True は各 ID の完了を保証しない。

        Args:
            ids: 完了にするアクション ID のリスト

        Returns:
            レスポンスが {"response": "ok"} と完全に一致する場合のみ True
        """
        joined = ';'.join(str(action_id) for action_id in ids)
        response = self.call('check', [('ids', joined)])

        return response == {'response': 'ok'}

    def done_action(self, id: Any) -> bool:
        return self.done_actions([id])

    # トランスポート

    def call(self, method: str, params: Optional[Params] = None, add_api_key: bool = True) -> Any:
        """
        API メソッドを呼び出す

        Args:
            method: API メソッド名
            params: パラメータ（順序付きの (name, value) 列または dict）
            add_api_key: True の場合 API キーを最後に付加する

        Returns:
            パース済みの JSON 値

        Raises:
            TransportError: HTTP リクエストが完了しなかった場合
            ProtocolError: レスポンスが JSON として解釈できない場合
        """
        method_url = self._get_method_url(method, params, add_api_key)
        body = self._http_get(method_url)
        return self._json_to_value(body)

    def _get_method_url(self, method: str, params: Optional[Params] = None,
                        add_api_key: bool = True) -> str:
        """メソッド URL を組み立てる（パラメータの順序を保持）"""
        method_url = f"{self.base_url}/{method}/"

        if params is None:
            pairs: Sequence[Tuple[str, Any]] = []
        elif isinstance(params, dict):
            pairs = list(params.items())
        else:
            pairs = params

        for name, value in pairs:
            method_url += f"{name}-{value}/"

        if add_api_key is True:
            method_url += f"key-{self.api_key or ''}/"

        return method_url

    def _http_get(self, url: str) -> str:
        """
        HTTP GET を実行してレスポンスボディを返す

        Raises:
            TransportError: 接続失敗、タイムアウト、非 2xx 応答の場合
        """
        masked_url = mask_credentials(url)
        self.logger.debug(f"API リクエスト: GET {masked_url}")

        start_time = time.time()
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            self.logger.warning(f"リクエストタイムアウト: {masked_url}")
            raise TransportError(f"Failed to http request (timeout): {masked_url}", url=url, original_error=e)
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            self.logger.warning(f"HTTP エラー {status_code}: {masked_url}")
            raise TransportError(f"Failed to http request: {masked_url}", url=url,
                                 status_code=status_code, original_error=e)
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"接続エラー: {masked_url} - {mask_credentials(e)}")
            raise TransportError(f"Failed to http request: {masked_url}", url=url, original_error=e)

        body = response.text
        log_api_request('GET', url, response.status_code, time.time() - start_time,
                        response_size=len(response.content or b''))
        return body

    def _json_to_value(self, body: str) -> Any:
        """
        JSON をパースする。JSON の null も不正なデータとして扱う

        Raises:
            ProtocolError: パースできない、または値が null の場合
        """
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"Invalid json data: {body}", body=body, original_error=e)

        if data is None:
            raise ProtocolError(f"Invalid json data: {body}", body=body)

        return data

    def _hash_to_key_value(self, data: List[Dict[str, Any]], key_name: str,
                           value_name: str) -> Dict[Any, Any]:
        """リストを key_name -> value_name の辞書に変換（同じキーは後勝ち）"""
        key_value_data: Dict[Any, Any] = {}

        for datum in data:
            key_value_data[datum[key_name]] = datum[value_name]

        return key_value_data

    def _find(self, data: List[Dict[str, Any]], key: str, value: Any) -> bool:
        """key の値が value とゆるく等しい要素があるかを線形探索"""
        for datum in data:
            if loose_equals(datum[key], value):
                return True

        return False
