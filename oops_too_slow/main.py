#!/usr/bin/env python3
"""
Oops Too Slow - 反应速度小游戏
主入口文件

用法:
    oops-too-slow                     单人模式
    oops-too-slow --server            启动房间服务器
    oops-too-slow --host --name Ann   创建房间（多人）
    oops-too-slow --join AB12CD       加入房间
"""

import argparse
import asyncio
import sys

from .config.settings import Config
from .core.errors import RoomError
from .core.round_controller import RoundController
from .core.sequence import SequenceGenerator
from .core.session import SessionCoordinator
from .core.state_machine import StabilityGate
from .core.timing import TimingAccumulator


def build_coordinator(config: Config, store=None):
    """按配置组装回合控制器与会话协调器"""
    controller = RoundController(
        generator=SequenceGenerator(),
        timing=TimingAccumulator(),
        gate=StabilityGate(
            stable_frames=config.gesture.stable_frames,
            mirror=config.gesture.mirror
        )
    )
    return SessionCoordinator(controller, store=store, config=config)


def player_name(name, host: bool) -> str:
    """未指定昵称时房主为 Host，其余为 Player"""
    return name or ("Host" if host else "Player")


def run_server_mode(config: Config):
    """
    服务器模式：启动 WebSocket 房间服务器
    """
    from .server import RoomServer

    print("=" * 50)
    print("Oops Too Slow 房间服务器")
    print("=" * 50)

    server = RoomServer(config)

    try:
        asyncio.run(server.run(
            host=config.server.host,
            port=config.server.port
        ))
    except KeyboardInterrupt:
        print("\n[SERVER] 收到中断信号")


def run_game_mode(config: Config, args) -> int:
    """
    游戏模式：单人，或作为房主/玩家加入多人房间
    """
    from .core.game import GameApp

    store = None
    if args.host or args.join:
        from websockets.exceptions import WebSocketException
        from .core.remote_store import WebSocketRoomStore

        try:
            store = WebSocketRoomStore(config.server.url, timeout=config.room.request_timeout)
        except (OSError, WebSocketException) as e:
            print(f"[ERROR] 无法连接房间服务器 {config.server.url}: {e}")
            return 1

    coordinator = build_coordinator(config, store)
    name = player_name(args.name, args.host)

    try:
        if store is None:
            coordinator.start_solo(args.rounds)
        else:
            coordinator.sign_in(name)
            if args.host:
                code = coordinator.create_party(args.rounds, name)
                print(f"[SESSION] 房间码: {code}")
            else:
                coordinator.join_party(args.join, name)
    except (RoomError, ValueError) as e:
        print(f"[ERROR] {e}")
        if store is not None:
            store.close()
        return 1

    try:
        GameApp(coordinator, config, use_camera=not args.no_camera).run()
    finally:
        if store is not None:
            store.close()
    return 0


def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(
        description="Oops Too Slow - 反应速度小游戏",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
    oops-too-slow                          单人模式（20 回合）
    oops-too-slow --rounds 30              单人模式（30 回合）
    oops-too-slow --server --port 9000     启动房间服务器
    oops-too-slow --host --name Ann        创建房间
    oops-too-slow --join AB12CD --name Bo  加入房间
        """
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--server", action="store_true", help="启动房间服务器")
    mode.add_argument("--host", action="store_true", help="创建多人房间")
    mode.add_argument("--join", type=str, metavar="CODE", help="加入多人房间")

    parser.add_argument("--name", type=str, default=None, help="玩家昵称 (默认: 房主 Host，玩家 Player)")
    parser.add_argument("--rounds", "-r", type=int, default=None, help="回合数 (10-50)")
    parser.add_argument(
        "--address",
        type=str,
        default="127.0.0.1",
        help="房间服务器地址 (默认: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8765,
        help="房间服务器端口 (默认: 8765)"
    )
    parser.add_argument(
        "--camera", "-c",
        type=int,
        default=0,
        help="摄像头设备 ID (默认: 0)"
    )
    parser.add_argument("--no-camera", action="store_true", help="不使用摄像头（仅按键/点击目标）")
    parser.add_argument("--no-mirror", action="store_true", help="不镜像预览")
    parser.add_argument("--debug", "-d", action="store_true", help="打印回合事件并显示每只手的识别结果")

    args = parser.parse_args(argv)

    # 创建配置
    config = Config()
    config.server.host = args.address
    config.server.port = args.port
    config.camera.device_id = args.camera
    config.debug = args.debug
    if args.no_mirror:
        config.camera.mirror = False

    if args.server:
        run_server_mode(config)
        return 0
    return run_game_mode(config, args)


if __name__ == "__main__":
    sys.exit(main())
