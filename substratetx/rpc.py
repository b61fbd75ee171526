# Python Substrate Transaction Library
#
# Copyright 2018-2024 Stichting Polkascan (Polkascan Foundation).
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

""" JSON-RPC transports: request/response calls and subscriptions delivered as async iterators
"""

import asyncio
import functools
import json
from collections import OrderedDict, deque
import logging
from typing import Optional

import requests
import websockets
from websockets.exceptions import ConnectionClosed

from .constants import MAX_EARLY_NOTIFICATIONS, MAX_EARLY_SUBSCRIPTIONS
from .exceptions import SubstrateRequestException, ConfigurationError

__all__ = ['RpcInterface', 'Subscription', 'WebsocketConnection', 'WebsocketRpc', 'HttpRpc', 'create_rpc']

logger = logging.getLogger(__name__)


class Subscription:
    """
    Notifications of a single subscription, consumed with `async for` or `await subscription.next()`.
    The iteration ends when the connection closes or the subscription is unsubscribed.
    """

    def __init__(self, rpc: 'RpcInterface', subscription_id: str, unsubscribe_method: Optional[str] = None,
                 connection: 'WebsocketConnection' = None):
        self.rpc = rpc
        self.subscription_id = subscription_id
        self.unsubscribe_method = unsubscribe_method
        self.connection = connection
        self.closed = False
        self.update_nr = 0
        self.__queue = asyncio.Queue()

    def push(self, result: any):
        self.__queue.put_nowait(result)

    def end(self):
        self.closed = True
        self.__queue.put_nowait(StopAsyncIteration)

    def __aiter__(self):
        return self

    async def __anext__(self) -> any:
        item = await self.__queue.get()

        if item is StopAsyncIteration:
            # Keep the end marker for subsequent reads
            self.__queue.put_nowait(StopAsyncIteration)
            raise StopAsyncIteration

        logger.debug(f'Subscription [{self.subscription_id} #{self.update_nr}]: {item}')
        self.update_nr += 1
        return item

    async def next(self) -> any:
        return await self.__anext__()

    async def unsubscribe(self):
        """
        Stops receiving notifications. Unsubscribing has no effect on the transaction or storage item subscribed to.
        """
        if self.closed:
            return

        self.end()
        await self.rpc.remove_subscription(self)

    def __repr__(self):
        return f'<Subscription {self.subscription_id}>'


class RpcInterface:
    """
    Request/response and subscription primitives of a node connection. Implementations correlate responses and
    notifications to their request or subscription; a single connection can be shared by concurrent callers.
    """

    async def rpc_request(self, method: str, params: list) -> any:
        """
        Performs a JSON-RPC request

        Parameters
        ----------
        method: method of the JSONRPC request
        params: a list containing the parameters of the JSONRPC request

        Returns
        -------
        The `result` of the response

        Raises
        ------
        SubstrateRequestException: with the error object reported by the node
        """
        raise NotImplementedError()

    async def subscribe(self, method: str, params: list, unsubscribe_method: Optional[str] = None) -> Subscription:
        """
        Starts a subscription, the returned Subscription yields the `result` of each notification
        """
        raise NotImplementedError()

    async def remove_subscription(self, subscription: Subscription):
        pass

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class WebsocketConnection:
    """
    State of a single websocket connection: requests awaiting their response and the subscriptions notified over
    it. When the connection closes, everything pending on it ends, regardless of any reconnect.
    """

    def __init__(self, websocket):
        self.websocket = websocket
        self.reader_task = None
        self.closed = False
        self.pending_requests = {}
        self.subscriptions = {}
        # Notifications that arrive before the subscription is registered
        self.early_notifications = OrderedDict()
        self.ended_subscription_ids = deque(maxlen=MAX_EARLY_SUBSCRIPTIONS)

    def process_message(self, message: dict):
        if 'id' in message:
            future = self.pending_requests.pop(message['id'], None)
            if future and not future.done():
                future.set_result(message)

        elif 'params' in message and 'subscription' in message['params']:
            subscription_id = message['params']['subscription']
            subscription = self.subscriptions.get(subscription_id)

            if subscription:
                subscription.push(message['params']['result'])
            else:
                self.buffer_notification(subscription_id, message['params']['result'])

        else:
            logger.warning(f'Unexpected message received: {message}')

    def buffer_notification(self, subscription_id: str, result: any):
        if subscription_id in self.ended_subscription_ids:
            logger.debug(f'Notification for ended subscription [{subscription_id}] dropped')
            return

        buffered = self.early_notifications.get(subscription_id)

        if buffered is None:
            if len(self.early_notifications) >= MAX_EARLY_SUBSCRIPTIONS:
                dropped_id, _ = self.early_notifications.popitem(last=False)
                logger.warning(f'Notifications for unknown subscription [{dropped_id}] dropped')
            buffered = self.early_notifications[subscription_id] = []

        if len(buffered) >= MAX_EARLY_NOTIFICATIONS:
            logger.warning(f'Notification for unknown subscription [{subscription_id}] dropped, buffer is full')
            return

        buffered.append(result)

    def add_subscription(self, subscription: Subscription):
        self.subscriptions[subscription.subscription_id] = subscription

        for result in self.early_notifications.pop(subscription.subscription_id, []):
            subscription.push(result)

        if self.closed:
            self.subscriptions.pop(subscription.subscription_id, None)
            subscription.end()

    def remove_subscription(self, subscription_id: str):
        self.subscriptions.pop(subscription_id, None)
        self.early_notifications.pop(subscription_id, None)
        self.ended_subscription_ids.append(subscription_id)

    def end_all(self, exception: Exception):
        self.closed = True

        for future in self.pending_requests.values():
            if not future.done():
                future.set_exception(exception)
        self.pending_requests.clear()

        for subscription in self.subscriptions.values():
            subscription.end()
        self.subscriptions.clear()
        self.early_notifications.clear()


class WebsocketRpc(RpcInterface):

    def __init__(self, url: str, ws_options: dict = None, auto_reconnect: bool = True,
                 request_timeout: float = None):
        """
        JSON-RPC over a websocket connection, multiplexing requests and subscriptions

        Parameters
        ----------
        url: websocket URL of the node e.g. wss://127.0.0.1:9944
        ws_options: options passed to `websockets.connect()`
        auto_reconnect: reconnect when sending a request on a closed connection
        request_timeout: seconds to wait for a response, no limit when omitted
        """
        self.url = url
        self.auto_reconnect = auto_reconnect
        self.request_timeout = request_timeout

        self.ws_options = ws_options or {}

        if 'max_size' not in self.ws_options:
            self.ws_options['max_size'] = 2 ** 32

        self.request_id = 1

        self.__connection = None
        self.__connect_lock = asyncio.Lock()

    @property
    def websocket(self):
        if self.__connection is None or self.__connection.closed:
            return None
        return self.__connection.websocket

    async def connect(self, stale: WebsocketConnection = None) -> WebsocketConnection:
        """
        (Re)creates the websocket connection and starts reading messages. A connection opened concurrently by
        another caller is reused, unless it is the `stale` connection being replaced.
        """
        async with self.__connect_lock:
            connection = self.__connection

            if connection is not None and not connection.closed and connection is not stale:
                return connection

            logger.debug("Connecting to {} ...".format(self.url))
            connection = WebsocketConnection(await websockets.connect(self.url, **self.ws_options))
            connection.reader_task = asyncio.create_task(self.__read_messages(connection))
            self.__connection = connection

            return connection

    async def get_connection(self) -> WebsocketConnection:
        if self.__connection is None or self.__connection.closed:
            return await self.connect()
        return self.__connection

    async def close(self):
        connection = self.__connection
        self.__connection = None

        if connection:
            logger.debug("Closing websocket connection")
            await connection.websocket.close()

            if connection.reader_task:
                await asyncio.gather(connection.reader_task, return_exceptions=True)

            connection.end_all(SubstrateRequestException('Websocket connection closed'))

    async def __read_messages(self, connection: WebsocketConnection):
        try:
            async for message in connection.websocket:
                connection.process_message(json.loads(message))
        except ConnectionClosed as e:
            logger.warning(f'Websocket connection closed: {e}')
        finally:
            connection.end_all(SubstrateRequestException('Websocket connection closed'))

            if self.__connection is connection:
                self.__connection = None

    @staticmethod
    async def __send(connection: WebsocketConnection, payload: dict) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        connection.pending_requests[payload['id']] = future

        try:
            await connection.websocket.send(json.dumps(payload))
        except ConnectionClosed:
            connection.pending_requests.pop(payload['id'], None)
            raise

        return future

    async def __request(self, method: str, params: list) -> tuple:
        connection = await self.get_connection()

        request_id = self.request_id
        self.request_id += 1

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id
        }

        logger.debug('RPC request #{}: "{}"'.format(request_id, method))

        try:
            future = await self.__send(connection, payload)
        except ConnectionClosed:
            connection.end_all(SubstrateRequestException('Websocket connection closed'))

            if not self.auto_reconnect:
                raise SubstrateRequestException('Websocket connection closed')

            logger.warning("Connection Closed; Trying to reconnecting...")
            connection = await self.connect(stale=connection)
            future = await self.__send(connection, payload)

        try:
            return connection, await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise SubstrateRequestException(
                f'No response to RPC request #{request_id} "{method}" within {self.request_timeout} seconds'
            )
        finally:
            connection.pending_requests.pop(request_id, None)

    async def send_request(self, method: str, params: list) -> dict:
        """
        Sends a request and waits for the matching response message

        Returns
        -------
        dict: the complete JSON-RPC response

        Raises
        ------
        SubstrateRequestException: when the connection closes or no response arrives within `request_timeout`
        """
        _, message = await self.__request(method, params)
        return message

    async def rpc_request(self, method: str, params: list) -> any:
        message = await self.send_request(method, params)

        if 'error' in message:
            raise SubstrateRequestException(message['error'])

        return message.get('result')

    async def subscribe(self, method: str, params: list, unsubscribe_method: Optional[str] = None) -> Subscription:
        connection, message = await self.__request(method, params)

        if 'error' in message:
            raise SubstrateRequestException(message['error'])

        subscription_id = message.get('result')

        subscription = Subscription(self, subscription_id, unsubscribe_method, connection=connection)
        connection.add_subscription(subscription)

        logger.debug(f"Websocket subscription [{subscription_id}] created")

        return subscription

    async def remove_subscription(self, subscription: Subscription):
        connection = subscription.connection

        if connection is None:
            return

        connection.remove_subscription(subscription.subscription_id)

        if subscription.unsubscribe_method and not connection.closed and connection is self.__connection:
            await self.rpc_request(subscription.unsubscribe_method, [subscription.subscription_id])


class HttpRpc(RpcInterface):

    def __init__(self, url: str, request_timeout: float = None, headers: dict = None):
        """
        JSON-RPC over HTTP; requests run in the default executor. Subscriptions are not available over HTTP.

        Parameters
        ----------
        url: HTTP URL of the node e.g. http://127.0.0.1:9933
        request_timeout: seconds to wait for a response
        headers: additional HTTP headers
        """
        self.url = url
        self.request_timeout = request_timeout
        self.request_id = 1
        self.session = requests.Session()
        self.default_headers = {
            'content-type': "application/json",
            'cache-control': "no-cache"
        }
        self.default_headers.update(headers or {})

    async def rpc_request(self, method: str, params: list) -> any:
        request_id = self.request_id
        self.request_id += 1

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id
        }

        logger.debug('RPC request #{}: "{}"'.format(request_id, method))

        post = functools.partial(
            self.session.post, self.url, data=json.dumps(payload), headers=self.default_headers,
            timeout=self.request_timeout
        )

        try:
            response = await asyncio.get_running_loop().run_in_executor(None, post)
        except requests.exceptions.RequestException as e:
            raise SubstrateRequestException(f'RPC request failed: {e}') from e

        if response.status_code != 200:
            raise SubstrateRequestException(
                "RPC request failed with HTTP status code {}".format(response.status_code)
            )

        json_body = response.json()

        if 'error' in json_body:
            raise SubstrateRequestException(json_body['error'])

        return json_body.get('result')

    async def subscribe(self, method: str, params: list, unsubscribe_method: Optional[str] = None) -> Subscription:
        raise ConfigurationError('Subscriptions are only available over a websocket connection')

    async def close(self):
        self.session.close()


def create_rpc(url: str, ws_options: dict = None, auto_reconnect: bool = True,
               request_timeout: float = None) -> RpcInterface:
    """
    Creates the transport matching the scheme of `url`
    """
    if url[0:6] == 'wss://' or url[0:5] == 'ws://':
        return WebsocketRpc(url, ws_options=ws_options, auto_reconnect=auto_reconnect,
                            request_timeout=request_timeout)

    if url[0:8] == 'https://' or url[0:7] == 'http://':
        return HttpRpc(url, request_timeout=request_timeout)

    raise ConfigurationError(f'Unsupported URL scheme: {url}')
