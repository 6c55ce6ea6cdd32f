# Pipeline services - FFmpeg engine, prober, HLS ladder, thumbnails, sprites, job store, processor
