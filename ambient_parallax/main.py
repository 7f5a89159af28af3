# ambient_parallax/main.py
import asyncio
import cv2
import logging
import os
import time
import numpy as np
from collections import deque

from parallax_engine.common.config import load_config
from parallax_engine.common.errors import ConfigError
from parallax_engine.common.logging_setup import configure_logging
from parallax_engine.device.capabilities import detect_host_environment
from parallax_engine.pipeline import TrackingPipeline
from parallax_engine.visualization.visualizer import Visualizer

logger = logging.getLogger("ambient_parallax")

async def run(config_path: str):
    """
    The main application loop.
    Selects a tracking source, renders every frame, and shuts down cleanly.
    """
    config = load_config(config_path)
    configure_logging(config.logging.level)

    vis = config.visualization
    environment = detect_host_environment(
        viewport=(vis.width, vis.height), **config.environment.model_dump())
    pipeline = TrackingPipeline(config, environment)
    visualizer = Visualizer(vis, pipeline.camera_rig, pipeline.parallax, pipeline.overlay, pipeline.spotlight)
    pipeline.on_resize(visualizer.resize)

    def on_mouse(event, x, y, flags, param):
        if event == cv2.EVENT_MOUSEMOVE:
            pipeline.handle_pointer(x, y)

    cv2.namedWindow(vis.window_name, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(vis.window_name, vis.width, vis.height)
    cv2.setMouseCallback(vis.window_name, on_mouse)

    fps_history = deque(maxlen=100)
    background = set()
    try:
        await pipeline.start()
        while True:
            frame_start_time = time.perf_counter()

            _, _, win_w, win_h = cv2.getWindowImageRect(vis.window_name)
            if (win_w, win_h) != (visualizer.width, visualizer.height):
                pipeline.resize(win_w, win_h)

            status = pipeline.tick()
            avg_fps = np.mean(fps_history) if fps_history else 0
            output_frame = visualizer.render(status, avg_fps, pipeline.preview_frame())
            cv2.imshow(vis.window_name, output_frame)

            key = cv2.waitKey(1) & 0xFF
            if key == ord('q') or cv2.getWindowProperty(vis.window_name, cv2.WND_PROP_VISIBLE) < 1:
                logger.info("Shutdown signal received.")
                break
            elif key == ord('r'):
                pipeline.set_reduced_motion(not status.reduced_motion)
            elif key == ord('c'):
                pipeline.recalibrate()
            elif key == ord('v'):
                pipeline.toggle_preview()
            elif key == ord('p'):
                task = asyncio.get_running_loop().create_task(pipeline.request_motion_permission())
                background.add(task)
                task.add_done_callback(background.discard)

            # Yield so the detection loop and permission flows can run
            await asyncio.sleep(0)

            latency = time.perf_counter() - frame_start_time
            fps_history.append(1.0 / latency if latency > 0 else 0)
    finally:
        pipeline.shutdown()
        cv2.destroyAllWindows()
        logger.info("Application terminated.")

def main():
    script_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(script_dir, 'config.yaml')
    try:
        asyncio.run(run(config_path))
    except ConfigError as e:
        print(f"ERROR: Failed to initialize. {e}")
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    main()
