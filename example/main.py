import asyncio

from provider_server import ProviderServer
from veo_studio_client.errors import ServiceUnavailable, VideoJobError
from veo_studio_client.models import (
    PromptFields,
    TextGenerationConfig,
    VideoJobConfig,
    VideoOptions,
)
from veo_studio_client.text_generation_client import TextGenerationClient
from veo_studio_client.video_job_client import VideoJobClient


async def progress(outcome):
    print(f"Task {outcome.task_id}: {outcome.state.value}")
    print(f"Elapsed time: {outcome.elapsed_time:.1f}s")


async def main():
    PORT = 8000
    server = ProviderServer()
    await server.start(port=PORT)
    base_url = f"http://localhost:{PORT}"
    print(f"Server started on {base_url}")

    # first key is out of quota, second is overloaded once
    server.script_gemini("key-1", 429)
    server.script_gemini("key-2", 503)
    server.status_flags.clear()
    server.status_flags.extend([0, 0, 1])

    text_client = TextGenerationClient.from_config(
        TextGenerationConfig(
            gemini_api_keys=["key-1", "key-2", "key-3"],
            gemini_base_url=base_url,
            deepseek_api_key="deepseek-key",
            deepseek_base_url=base_url,
        )
    )
    video_client = VideoJobClient(
        VideoJobConfig(api_key="kie-key", base_url=base_url, poll_interval=1.0)
    )

    try:
        dialogue = await text_client.translate("ဒီမှာ ဘယ်လောက်ကြာကြာ အလုပ်လုပ်ခဲ့ပြီလဲ")
        print(f"Translation: {dialogue}")

        prompt = await text_client.generate_structured_prompt(
            PromptFields(
                location="Shwedagon Pagoda at sunset",
                character1="Aung, a young reporter",
                character2="Daw Mya, an elderly flower seller",
                dialogue1=dialogue,
                dialogue2="For forty years.",
                prompt_type="interview",
            )
        )
        print(f"Prompt:\n{prompt}")

        urls = await video_client.generate(
            prompt, VideoOptions(aspect_ratio="9:16"), max_wait=30.0, on_progress=progress
        )
        print(f"Videos: {urls}")
    except ServiceUnavailable as e:
        print(f"Translation failed: {e}")
    except VideoJobError as e:
        print(f"Video job {e.task_id} failed: {e}")
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
